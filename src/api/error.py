from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from libs.result import Error


class ClientError(HTTPException):
    """Carries a libs.result Error to the client as {"error": {code, message, reason}}"""

    def __init__(self, error: Error, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code=status_code, detail=error.message)
        self.error = error


async def client_error_handler(request: Request, exc: ClientError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.error.to_dict()})
