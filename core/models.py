from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model providing the fields shared by every model in the system.

    Tracks when each record was created and last updated.
    """
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
