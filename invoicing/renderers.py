from rest_framework import renderers


class PDFRenderer(renderers.BaseRenderer):
    """
    Lets clients request ``Accept: application/pdf`` on document endpoints.

    Successful responses are returned as raw PDF bytes by the view; error
    payloads are still rendered as JSON.
    """

    media_type = 'application/pdf'
    format = 'pdf'
    charset = None
    render_style = 'binary'

    def render(self, data, accepted_media_type=None, renderer_context=None):
        if isinstance(data, bytes):
            return data
        return renderers.JSONRenderer().render(data)
