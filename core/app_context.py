from dataclasses import dataclass
from typing import Optional

from core.config_loader import AppConfig
from core.events import EventBus
from core.fx import FxRateProvider, build_fx_provider
from core.geocoding import GeocodingClient
from core.lifecycle import MatchLifecycleManager
from core.match_index import MatchIndex
from core.messaging import MessagingService
from core.profiles import ProfileService
from core.ranking import RankingService
from core.scorer import CompatibilityScorer
from notification.service import NotificationService
from pipeline.control import LeaderLock, build_leader_lock
from pipeline.rescan import RescanDispatcher
from pipeline.sweep import ExpirySweeper


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    Services receive a session factory rather than a session; each
    operation opens its own unit of work via housing_uow().
    """
    config: AppConfig
    events: EventBus
    fx_provider: FxRateProvider
    scorer: CompatibilityScorer
    lifecycle: MatchLifecycleManager
    match_index: MatchIndex
    messaging: MessagingService
    ranking: RankingService
    profiles: ProfileService
    dispatcher: RescanDispatcher
    sweeper: ExpirySweeper
    notification_service: Optional[NotificationService] = None

    @classmethod
    def build(
        cls,
        config: AppConfig,
        session_factory=None,
        fx_provider: Optional[FxRateProvider] = None,
        leader_lock: Optional[LeaderLock] = None,
        notification_service: Optional[NotificationService] = None,
    ) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            session_factory: sessionmaker to use instead of the global SessionLocal
            fx_provider: FX provider override (tests)
            leader_lock: Sweeper lock override (tests)
            notification_service: Notifier override (tests)
        """
        matching = config.matching

        if notification_service is None and config.notifications.enabled:
            notification_service = NotificationService(config.notifications, session_factory=session_factory)

        fx_provider = fx_provider or build_fx_provider(config.fx)
        scorer = CompatibilityScorer(matching.weights, fx_provider, matching.neutral_factor)

        lifecycle = MatchLifecycleManager(matching, session_factory, notification_service)
        match_index = MatchIndex(scorer, lifecycle, matching, session_factory, notification_service)
        messaging = MessagingService(session_factory, notification_service)
        ranking = RankingService(session_factory)

        geocoder = None
        if config.geocoding.enabled and config.geocoding.base_url:
            geocoder = GeocodingClient(config.geocoding)

        events = EventBus()
        profiles = ProfileService(session_factory, events, geocoder)

        dispatcher = RescanDispatcher(match_index, matching.dispatch_workers)
        dispatcher.subscribe(events)

        sweeper = ExpirySweeper(
            lifecycle,
            match_index,
            leader_lock or build_leader_lock(config.sweep),
            config.sweep,
            session_factory,
        )

        return cls(
            config=config,
            events=events,
            fx_provider=fx_provider,
            scorer=scorer,
            lifecycle=lifecycle,
            match_index=match_index,
            messaging=messaging,
            ranking=ranking,
            profiles=profiles,
            dispatcher=dispatcher,
            sweeper=sweeper,
            notification_service=notification_service,
        )

    def shutdown(self, wait: bool = True) -> None:
        self.dispatcher.shutdown(wait=wait)
        self.match_index.shutdown(wait=wait)
