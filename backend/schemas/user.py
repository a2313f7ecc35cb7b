from pydantic import BaseModel, EmailStr, Field
from typing import List, Literal, Optional

# Shared properties for user models
class UserBase(BaseModel):
    email: EmailStr

# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str

# Schema for user registration requests
class UserCreate(UserBase):
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None

# Output schema for user profile details
class UserResponse(UserBase):
    id: int
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    class Config:
        from_attributes = True

# Paginated user list for the admin panel
class UserPage(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    page_size: int

# Schema for JWT authentication token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

# Schema for administrative role updates
class RoleUpdate(BaseModel):
    role: Literal["admin", "user"]
