import json
import logging
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.common.types import Err, Ok, Result
from apps.common.validators import get_client_ip, log_security_event

from .webhooks.base import BaseWebhookProcessor, get_webhook_processor

logger = logging.getLogger(__name__)


# ===============================================================================
# WEBHOOK ENDPOINT VIEWS
# ===============================================================================

@method_decorator(csrf_exempt, name='dispatch')
class WebhookView(View):
    """
    🔄 Generic signed webhook endpoint

    Status codes tell the provider whether to redeliver:
    401 bad signature, 400 malformed payload, 404 unknown order,
    500 our failure (retry later), 200 handled or ignored.
    """

    source_name: str | None = None  # Override in subclasses
    signature_header = 'HTTP_X_SIGNATURE'
    http_method_names = ['post']

    def post(self, request: HttpRequest) -> JsonResponse:
        """📨 Authenticate, parse and process an incoming webhook"""
        processor = get_webhook_processor(self.source_name or '')
        if processor is None:
            logger.error(f"🔥 No processor found for source: {self.source_name}")
            return self._error_response("Webhook source not configured", 500)

        if not processor.is_configured():
            return self._error_response("Webhook secret not configured", 500)

        try:
            signature = self.extract_signature(request)
            authenticated = self._authenticate(request, processor, signature)
            if authenticated.is_err():
                return self._error_response(authenticated.error, 401)

            payload = self._parse_request(request)
            if payload.is_err():
                return self._error_response(payload.error, 400)

            result = processor.process_webhook(
                payload=payload.unwrap(),
                signature=signature,
                ip_address=get_client_ip(request),
                user_agent=request.META.get('HTTP_USER_AGENT', ''),
            )

        except Exception:
            logger.exception(f"💥 Critical error processing {self.source_name} webhook")
            return self._error_response("Internal error", 500)

        webhook_id = str(result.webhook_event.id) if result.webhook_event else None
        if result.success:
            logger.info(f"✅ {self.source_name} webhook processed: {result.message}")
            return JsonResponse({
                'status': 'success',
                'message': result.message,
                'webhook_id': webhook_id
            })

        logger.warning(f"❌ {self.source_name} webhook rejected: {result.message}")
        return self._error_response(result.message, result.status_code)

    def _authenticate(self, request: HttpRequest, processor: BaseWebhookProcessor, signature: str) -> Result[None, str]:
        """Verify the signature over the raw body before anything is parsed."""
        if not signature:
            return Err("Missing webhook signature")

        if not processor.verify_signature(request.body, signature):
            log_security_event(
                'webhook_signature_invalid',
                {'source': self.source_name, 'path': request.path},
                get_client_ip(request),
            )
            return Err("Invalid webhook signature")

        return Ok(None)

    def _parse_request(self, request: HttpRequest) -> Result[dict[str, Any], str]:
        """Parse and validate the incoming request payload."""
        try:
            payload = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return Err("Invalid JSON payload")

        if not isinstance(payload, dict):
            return Err("Payload must be a JSON object")
        return Ok(payload)

    def _error_response(self, message: str, status: int) -> JsonResponse:
        """Create a standardized error response."""
        return JsonResponse({'status': 'error', 'message': message}, status=status)

    def extract_signature(self, request: HttpRequest) -> str:
        """🔐 Extract webhook signature from headers"""
        return request.META.get(self.signature_header, '').strip()


class YooKassaWebhookView(WebhookView):
    """💳 YooKassa payment notifications"""

    source_name = 'yookassa'
    signature_header = 'HTTP_X_YOOKASSA_SIGNATURE'
