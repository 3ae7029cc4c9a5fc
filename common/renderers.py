from rest_framework.renderers import JSONRenderer


def is_enveloped(data) -> bool:
    return isinstance(data, dict) and "success" in data and "statusCode" in data


class EnvelopeJSONRenderer(JSONRenderer):
    """JSON renderer that wraps bare payloads in the success envelope.

    Views that need a custom message return :func:`common.responses.api_response`;
    errors arrive already enveloped from the exception handler.
    """

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = (renderer_context or {}).get("response")
        if response is None:
            return super().render(data, accepted_media_type, renderer_context)
        if data is None and response.status_code == 204:
            return b""
        if not is_enveloped(data):
            data = {
                "success": response.status_code < 400,
                "statusCode": response.status_code,
                "data": data,
                "message": "",
            }
        return super().render(data, accepted_media_type, renderer_context)
