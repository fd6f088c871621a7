"""
Chat API view.

POST /chat runs the full RAG pipeline for one message.
"""
import logging
import json

from django.http import JsonResponse
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from apps.rag.chat import get_chat_service
from apps.rag.errors import CompletionError, EmbeddingError, StorageError

logger = logging.getLogger(__name__)

# The only error body a caller ever sees for a pipeline failure
GENERIC_ERROR = {"error": "Something went wrong"}


@method_decorator(csrf_exempt, name='dispatch')
class ChatView(View):
    """
    POST /chat

    Embed the message, retrieve the three nearest documents, and answer
    from them.

    Request body:
        {
            "message": "What are the opening hours?"
        }

    Response:
        {
            "reply": "We are open from..."
        }

    Errors:
        400 {"error": "..."} for a malformed body or missing message
        500 {"error": "Something went wrong"} for any pipeline failure
    """
    http_method_names = ['post']

    # Injected pipeline; built from settings when not provided
    service = None

    def post(self, request):
        try:
            body = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JsonResponse({"error": "Invalid JSON"}, status=400)

        if not isinstance(body, dict):
            return JsonResponse({"error": "Invalid JSON"}, status=400)

        # Validated but not normalized: the message reaches the LLM verbatim
        message = body.get("message")
        if not isinstance(message, str) or not message.strip():
            return JsonResponse({"error": "message is required"}, status=400)

        try:
            service = self.service or get_chat_service()
            chat_reply = service.reply(message)
        except (EmbeddingError, StorageError, CompletionError) as e:
            # Embedding, storage and completion failures all collapse into
            # one opaque response; the stage is only recorded in the log.
            logger.error(f"Chat failed at {e.stage.value} stage: {e}")
            return JsonResponse(GENERIC_ERROR, status=500)
        except Exception:
            logger.exception("Unexpected error while handling chat request")
            return JsonResponse(GENERIC_ERROR, status=500)

        return JsonResponse(chat_reply.to_dict())
