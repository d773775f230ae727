import os
import re
import uuid
from datetime import datetime, timezone
from functools import wraps

from flask import current_app, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from werkzeug.utils import secure_filename

from errors import Forbidden, ValidationError

UPLOAD_URL_PREFIX = '/api/uploads/'

_MAGNITUDE = re.compile(r'^\s*(\d+(?:\.\d+)?)')


def utcnow():
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    if value is None:
        return None
    return value.isoformat() + 'Z'


def parse_datetime(value, field='date'):
    """Parses an ISO-8601 string into naive UTC. Raises ValidationError."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f'Invalid {field}. Use an ISO-8601 date, e.g. 2025-01-31T18:00:00Z')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def quantity_magnitude(quantity):
    """Leading number of a free-text quantity: '15 kg' -> 15.0, 'abc' -> 0.0."""
    match = _MAGNITUDE.match(quantity or '')
    return float(match.group(1)) if match else 0.0


def round_half_up(value):
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def json_body():
    """The request's JSON object, {} when there is none. Arrays and scalars are rejected."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Invalid request body')
    return data


def current_user_id():
    return int(get_jwt_identity())


def role_required(role):
    """Token check followed by a role check against the 'role' claim."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if get_jwt().get('role') != role:
                if role == 'donor':
                    raise Forbidden('Access Denied: Only Donors are authorized to do this.')
                raise Forbidden('Access Denied: Only NGOs/Receivers can perform this action.')
            return fn(*args, **kwargs)
        return wrapper
    return decorator


# ==========================================
#  IMAGE STORAGE
# ==========================================
def save_image(file_storage):
    """Stores an uploaded photo under UPLOAD_FOLDER and returns its public URL."""
    filename = secure_filename(file_storage.filename or '')
    ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    if ext not in current_app.config['ALLOWED_IMAGE_EXTENSIONS']:
        raise ValidationError('Image must be a png, jpg, jpeg, gif or webp file')

    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)

    stored_name = f"{uuid.uuid4().hex}.{ext}"
    file_storage.save(os.path.join(folder, stored_name))
    return UPLOAD_URL_PREFIX + stored_name


def remove_image(image_url):
    """Deletes a locally stored photo; foreign URLs are left alone."""
    if not image_url:
        return
    if not image_url.startswith(UPLOAD_URL_PREFIX):
        return
    path = os.path.join(current_app.config['UPLOAD_FOLDER'], secure_filename(image_url[len(UPLOAD_URL_PREFIX):]))
    try:
        os.remove(path)
    except FileNotFoundError:
        current_app.logger.warning("Image already gone: %s", path)
