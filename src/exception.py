class ExamplesException(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.type = "unknown_error"

    def get_error_body(self):
        return {"error": self.type, "error_message": self.message}

    def get_error_message(self):
        return f"{self.type} {self.message}"


class InvalidHyperparameterException(ExamplesException):
    def __init__(self, message: str):
        super().__init__(message)
        self.type = "invalid_hyperparameter"


class InvalidDataShapeException(ExamplesException):
    def __init__(self, message: str):
        super().__init__(message)
        self.type = "invalid_data_shape"


class InvalidGameConfigException(ExamplesException):
    def __init__(self, message: str):
        super().__init__(message)
        self.type = "invalid_game_config"


class InvalidDateStringException(ExamplesException):
    def __init__(self, message: str):
        super().__init__(message)
        self.type = "invalid_date_string"


class ModelNotFoundException(ExamplesException):
    def __init__(self, message: str):
        super().__init__(message)
        self.type = "model_not_found"


class DataDownloadException(ExamplesException):
    def __init__(self, message: str):
        super().__init__(message)
        self.type = "data_download_failed"


class UnknownModelTypeException(ExamplesException):
    def __init__(self, message: str):
        super().__init__(message)
        self.type = "unknown_model_type"
