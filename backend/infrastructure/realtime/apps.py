from django.apps import AppConfig, apps


class RealtimeConfig(AppConfig):
    """
    Owns the subscriber and push-endpoint registries of this process.

    Constructed once at startup and injected into the notification fan-out.
    """

    name = 'infrastructure.realtime'
    label = 'realtime'
    verbose_name = 'Temps réel'

    def ready(self):
        from .push import PushEndpointRegistry
        from .registry import SubscriberRegistry

        self.subscribers = SubscriberRegistry()
        self.push_endpoints = PushEndpointRegistry()


def get_realtime_config() -> RealtimeConfig:
    return apps.get_app_config('realtime')
