import asyncio
import logging
import os
from typing import Any

from flask import Flask, request, jsonify, send_file
from werkzeug.exceptions import InternalServerError

import config
import extractor
from notifier import RelayError, TelexNotifier
from rewriter import BatchRewriter, RewriteError
from shortener import BitlyShortener

logger = logging.getLogger(__name__)

EVENT_NAME = 'link_shortened'
BOT_USERNAME = 'link-snap-bot'
PROCESSING_ERROR = 'Failed to process the message'

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = 1 * 1024 * 1024  # 1 MB

SETTINGS = config.load_config()
if not config.is_configured(SETTINGS):
    logger.warning("BITLY_ACCESS_TOKEN is not set, shortening requests will be rejected by the provider")


class ValidationError(Exception):
    """Raised when a webhook payload lacks a required field"""


def validate_payload(data: Any, require_channel_id: bool = True) -> tuple[str, str | None]:
    """Check webhook payload fields before any outbound call.

    `settings` is opaque and only checked for presence.

    Returns:
        (message, channel_id)

    Raises:
        ValidationError: listing the missing fields
    """
    if not isinstance(data, dict):
        raise ValidationError('Invalid JSON payload')

    message = data.get('message')
    channel_id = data.get('channel_id')
    missing = []
    if not isinstance(message, str) or not message:
        missing.append('message')
    if data.get('settings') is None:
        missing.append('settings')
    if require_channel_id and not channel_id:
        missing.append('channel_id')
    if missing:
        raise ValidationError(f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required")

    return message, str(channel_id) if channel_id else None


def build_rewriter() -> BatchRewriter:
    shortener = BitlyShortener(
        SETTINGS['BITLY_ACCESS_TOKEN'],
        api_url=SETTINGS['BITLY_API_URL'],
        timeout=SETTINGS['SHORTEN_TIMEOUT'],
        logger=logger,
    )
    return BatchRewriter(
        shortener,
        timeout=SETTINGS['SHORTEN_TIMEOUT'],
        max_concurrency=SETTINGS['MAX_CONCURRENT_SHORTENS'],
        logger=logger,
    )


def build_notifier() -> TelexNotifier:
    return TelexNotifier(SETTINGS['TELEX_API_URL'], timeout=SETTINGS['RELAY_TIMEOUT'], logger=logger)


async def relay_message(channel_id: str, content: str) -> bool:
    """Push the rewritten message to its channel; failures are only logged"""
    notifier = build_notifier()
    try:
        await asyncio.to_thread(notifier.relay, channel_id, content)
    except RelayError as e:
        logger.warning("Rewritten message was not relayed to channel %s: %s", channel_id, e)
        return False
    return True


@app.before_request
def check_content_type():
    """Reject POST requests without application/json Content-Type.

    A body that is not JSON carries none of the required fields, so this is
    the same 400 a payload with missing fields gets.
    """
    if request.method == 'POST':
        content_type = request.content_type or ''
        if 'application/json' not in content_type:
            return jsonify({'error': 'Content-Type must be application/json'}), 400


@app.after_request
def add_cors_headers(response):
    """Allow cross-origin calls from the integration host"""
    response.headers['Access-Control-Allow-Origin'] = '*'
    response.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
    return response


@app.errorhandler(InternalServerError)
def handle_internal_error(e):
    logger.error("Unhandled error: %s", e.original_exception or e)
    return jsonify({'error': PROCESSING_ERROR}), 500


@app.route('/shortenURL', methods=['POST'])
@app.route('/shortenUrl', methods=['POST'])
async def shorten_url():
    """Shorten every link in an incoming message"""
    data = request.get_json(silent=True)
    try:
        message, channel_id = validate_payload(data, SETTINGS['REQUIRE_CHANNEL_ID'])
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400

    logger.info("Incoming request: %s", data)

    occurrences = extractor.extract(message, SETTINGS['EXTRACT_MODE'])
    if not occurrences:
        return jsonify({'message': message})

    try:
        result = await build_rewriter().rewrite(message, occurrences)
    except RewriteError as e:
        logger.error("Error processing request for channel %s: %s (url=%s)", channel_id, e, e.url)
        return jsonify({'error': PROCESSING_ERROR}), 500

    logger.info("Formatted message: %s", result.message)

    if SETTINGS['RELAY_ENABLED'] and channel_id:
        await relay_message(channel_id, result.message)

    return jsonify({
        'event_name': EVENT_NAME,
        'message': result.message,
        'status': 'success',
        'username': BOT_USERNAME,
    })


@app.route('/integration', methods=['GET'])
def get_integration():
    """Serve the integration descriptor verbatim"""
    path = SETTINGS['INTEGRATION_FILE']
    if not os.path.isfile(path):
        logger.error("Integration descriptor not found: %s", path)
        return jsonify({'error': 'Integration descriptor not found'}), 404
    return send_file(os.path.abspath(path), mimetype='application/json')


def run_web_ui(host: str | None = None, port: int | None = None) -> None:
    """Run the webhook server"""
    host = host or SETTINGS['HOST']
    port = port or SETTINGS['PORT']
    logger.info("Webhook server is running at http://%s:%s", host, port)
    logger.info("Extract mode: %s, relay %s", SETTINGS['EXTRACT_MODE'],
                'enabled' if SETTINGS['RELAY_ENABLED'] else 'disabled')
    app.run(host=host, port=port, debug=False)


if __name__ == '__main__':
    run_web_ui()
