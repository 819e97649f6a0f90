"""Process-wide services shared by every streaming session."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from dal.translation_dal import TranslationDAL
from dal.vocabulary_dal import VocabularyDAL
from services.realtime.admission import AdmissionController
from services.realtime.credential_pool import ClientFactory, CredentialPool
from services.realtime.inference_client import InferenceClient
from services.realtime.session_store import SessionStore
from services.realtime.shortlist import FeatureCache, FeatureExtractor
from services.realtime.sign_classifier import SignClassifier
from services.realtime.vocabulary_cache import VocabularyCache
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings


@dataclass
class RealtimeRuntime:
	"""Everything a session handler needs; only the pool and caches are shared state."""

	settings: Settings
	pool: CredentialPool
	client: InferenceClient
	feature_cache: FeatureCache
	classifier: SignClassifier
	vocabulary: VocabularyCache
	controller: AdmissionController
	sessions: SessionStore
	translations: TranslationDAL


def build_runtime(
	settings: Settings,
	db_initializer: AsyncDatabaseInitializer,
	client_factory: Optional[ClientFactory] = None,
) -> RealtimeRuntime:
	"""Wire the pipeline from settings and the shared database."""
	pool = CredentialPool(settings.api_keys, client_factory)
	client = InferenceClient(pool, model=settings.model, daily_quota_marker=settings.daily_quota_marker)
	feature_cache = FeatureCache(
		ttl=settings.stage_a_ttl,
		sweep_age=settings.stage_a_sweep_age,
		sweep_size=settings.stage_a_sweep_size,
	)
	classifier = SignClassifier(
		client,
		FeatureExtractor(client, feature_cache),
		shortlist_size=settings.shortlist_size,
		context_window=settings.context_window,
	)
	vocabulary = VocabularyCache(VocabularyDAL(db_initializer).fetch_all, ttl=settings.vocabulary_ttl)
	controller = AdmissionController(
		min_call_interval=settings.min_call_interval,
		duplicate_ttl=settings.duplicate_ttl,
		cooldown=settings.cooldown,
	)
	return RealtimeRuntime(
		settings=settings,
		pool=pool,
		client=client,
		feature_cache=feature_cache,
		classifier=classifier,
		vocabulary=vocabulary,
		controller=controller,
		sessions=SessionStore(settings.frame_history, settings.conversation_history),
		translations=TranslationDAL(db_initializer),
	)
