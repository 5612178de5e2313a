from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "opportunity-radar"
    environment: str = "dev"
    log_level: str = "INFO"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    provider_timeout_seconds: float = 15.0
    provider_user_agent: str = "OpportunityRadar/1.0"
    static_fallback_enabled: bool = True
    scheduler_enabled: bool = True
    startup_delay_seconds: float = 5.0
    aggregation_interval_seconds: float = 6 * 60 * 60
    coresignal_api_key: str | None = None
    coresignal_base_url: str = "https://api.coresignal.com/cdapi/v2"
    adzuna_app_id: str | None = None
    adzuna_app_key: str | None = None
    adzuna_base_url: str = "https://api.adzuna.com/v1/api/jobs/us"
    rapidapi_key: str | None = None
    nsf_reu_url: str = "https://www.nsf.gov/crssprgm/reu/list_result.jsp?unitid=5049"
    remoteok_url: str = "https://remoteok.io/api"
    usajobs_url: str = "https://data.usajobs.gov/api/jobs"
    justserve_url: str = "https://www.justserve.org/api/opportunities"
    challenge_gov_url: str = "https://www.challenge.gov/challenges.xml"
    rapidapi_internships_url: str = "https://internships-api.p.rapidapi.com/internships"
    github_internships_url: str = (
        "https://raw.githubusercontent.com/SimplifyJobs/Summer2026-Internships/dev/.github/scripts/listings.json"
    )
    otel_enabled: bool = True
    otel_service_name: str = "opportunity-radar"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="OR_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
