from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Runtime
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    port: int = Field(default=8080, validation_alias="PORT")
    # Comma-separated; "*" allows any origin (no credentials).
    allowed_origins: str = Field(default="*", validation_alias="ALLOWED_ORIGINS")

    # AWS / data
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    tenders_table_name: str | None = Field(default=None, validation_alias="TENDERS_TABLE")
    bids_table_name: str | None = Field(default=None, validation_alias="BIDS_TABLE")
    audit_log_table_name: str | None = Field(default=None, validation_alias="AUDIT_LOG_TABLE")
    bids_bucket_name: str | None = Field(default=None, validation_alias="BIDS_BUCKET")

    # Upload confirmation (S3 ObjectCreated -> SQS -> worker)
    upload_events_queue_url: str | None = Field(
        default=None, validation_alias="UPLOAD_EVENTS_QUEUE_URL"
    )
    upload_events_poll_wait_seconds: int = Field(
        default=10, validation_alias="UPLOAD_EVENTS_POLL_WAIT_SECONDS"
    )
    upload_events_poll_max_messages: int = Field(
        default=5, validation_alias="UPLOAD_EVENTS_POLL_MAX_MESSAGES"
    )
    # After this many receives a message with failed records is dropped anyway.
    upload_events_max_receives: int = Field(
        default=5, validation_alias="UPLOAD_EVENTS_MAX_RECEIVES"
    )

    # Auth (Cognito access tokens)
    cognito_user_pool_id: str | None = Field(
        default=None, validation_alias="COGNITO_USER_POOL_ID"
    )
    cognito_client_id: str | None = Field(
        default=None, validation_alias="COGNITO_CLIENT_ID"
    )
    cognito_region: str | None = Field(default=None, validation_alias="COGNITO_REGION")

    # Outbound email (SES). Unset means "skip and log".
    ses_from_email: str | None = Field(default=None, validation_alias="SES_FROM_EMAIL")

    # Audit retention is advisory (DynamoDB TTL attribute), not enforced by the app.
    audit_retention_days: int = Field(default=365, validation_alias="AUDIT_RETENTION_DAYS")

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    def require_in_production(self) -> None:
        """
        Enforce required settings in production.

        Development and test runs may start with partial config; every store
        call fails loudly at use time when its table or bucket is missing.
        """
        if not self.is_production:
            return

        required = {
            "TENDERS_TABLE": self.tenders_table_name,
            "BIDS_TABLE": self.bids_table_name,
            "AUDIT_LOG_TABLE": self.audit_log_table_name,
            "BIDS_BUCKET": self.bids_bucket_name,
            "COGNITO_USER_POOL_ID": self.cognito_user_pool_id,
            "COGNITO_CLIENT_ID": self.cognito_client_id,
        }
        missing = [name for name, value in required.items() if not str(value or "").strip()]
        if missing:
            raise RuntimeError(f"Missing required settings in production: {', '.join(missing)}")

    def to_log_safe_dict(self) -> dict[str, object]:
        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "aws": {
                "aws_region": self.aws_region,
                "tenders_table_name": self.tenders_table_name,
                "bids_table_name": self.bids_table_name,
                "audit_log_table_name": self.audit_log_table_name,
                "bids_bucket_name": self.bids_bucket_name,
                "upload_events_queue_configured": bool(self.upload_events_queue_url),
            },
            "auth": {
                "cognito_user_pool_id": self.cognito_user_pool_id,
                "cognito_client_id": self.cognito_client_id,
                "cognito_region": self.cognito_region or self.aws_region,
            },
            "email": {"ses_from_email_configured": bool(self.ses_from_email)},
            "audit_retention_days": self.audit_retention_days,
        }

    def allowed_origin_list(self) -> list[str]:
        return [o.strip() for o in str(self.allowed_origins or "").split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s


settings = get_settings()
