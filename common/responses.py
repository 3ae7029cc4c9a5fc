from rest_framework import status
from rest_framework.response import Response


def api_response(data=None, message: str = "", status_code: int = status.HTTP_200_OK, headers=None) -> Response:
    """Build a success envelope carrying a human-readable message."""
    return Response(
        {
            "success": status_code < 400,
            "statusCode": status_code,
            "data": data,
            "message": message,
        },
        status=status_code,
        headers=headers,
    )
