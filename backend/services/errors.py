# backend/services/errors.py
# Domain errors raised by the services layer; main.py maps them to HTTP responses.


class StockError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProductNotFound(StockError):
    status_code = 404


class MovementNotFound(StockError):
    status_code = 404


class EmployeeNotFound(StockError):
    status_code = 404


class CategoryNotFound(StockError):
    status_code = 404


class InsufficientStock(StockError):
    status_code = 409


class MovementDeleted(StockError):
    status_code = 409


class IncompatibleUnits(StockError):
    status_code = 422


class InvalidQuantity(StockError):
    status_code = 422


class EmployeeRequired(StockError):
    status_code = 422


class InactiveEmployee(StockError):
    status_code = 422


class ImportFileError(StockError):
    status_code = 400
