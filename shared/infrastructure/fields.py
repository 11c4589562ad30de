"""
Model fields for sensitive data.

EncryptedCharField keeps credentials encrypted in the database and exposes
plaintext on the model instance.
"""

import logging

from django.db import models

from .encryption import InvalidToken, decrypt_string, encrypt_string

logger = logging.getLogger(__name__)


class EncryptedCharField(models.TextField):
    """Text column holding a Fernet token; plaintext in Python."""

    description = "Encrypted text field"

    def __init__(self, *args, **kwargs):
        # Length applies to the plaintext; the stored token is longer.
        self.plaintext_max_length = kwargs.pop("max_length", None)
        super().__init__(*args, **kwargs)

    def deconstruct(self):
        name, path, args, kwargs = super().deconstruct()
        if self.plaintext_max_length is not None:
            kwargs["max_length"] = self.plaintext_max_length
        return name, path, args, kwargs

    def from_db_value(self, value, expression, connection):
        if value is None:
            return value
        try:
            return decrypt_string(value)
        except InvalidToken:
            logger.error("Could not decrypt %s; was ENCRYPTION_KEY rotated?", self.name)
            return ""

    def get_prep_value(self, value):
        if value is None or value == "":
            return ""
        return encrypt_string(str(value))

    def to_python(self, value):
        if value is None:
            return value
        return str(value)
