from django.apps import AppConfig


class CurationAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "curation"
    verbose_name = "ROM curation"
