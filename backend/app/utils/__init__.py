from .errors import error_detail, error_response
