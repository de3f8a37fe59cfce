from werkzeug.security import check_password_hash, generate_password_hash

# Fixed work factor, no pepper
HASH_METHOD = "pbkdf2:sha256:600000"
SALT_LENGTH = 16


def hash_password(password):
    """Hash a plaintext password for storage."""
    return generate_password_hash(password, method=HASH_METHOD, salt_length=SALT_LENGTH)


def verify_password(password, digest):
    """Return True only if password matches digest. Malformed digests never raise."""
    if not password or not digest:
        return False
    try:
        return check_password_hash(digest, password)
    except (ValueError, TypeError):
        return False
