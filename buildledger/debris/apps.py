from django.apps import AppConfig


class DebrisConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'buildledger.debris'
