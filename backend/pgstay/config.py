from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10.v1"
    database_url: str = "sqlite:///./pgstay.db"

    # ---- Logging ----
    log_level: str = "INFO"
    sql_log_level: str = "WARNING"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- SaaS Auth / tenancy ----
    auth_mode: str = "dev"  # dev|jwt
    dev_auto_provision: bool = True

    # Dev header names
    dev_header_org_slug: str = "X-Org-Slug"
    dev_header_user_email: str = "X-User-Email"
    dev_header_user_role: str = "X-User-Role"

    # ---- Plans ----
    default_plan_code: str = "starter"

    # ---- JWT cookie ----
    jwt_secret: str = "dev-change-me"
    jwt_exp_minutes: int = 60 * 24 * 7  # 7 days
    jwt_cookie_name: str = "pgstay_jwt"
    jwt_cookie_secure: int = 0
    jwt_cookie_samesite: str = "lax"

    # ---- Billing periods ----
    rent_due_day: int = 10
    salary_due_day: int = 28

    # ---- Email (SMTP) ----
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 10.0
    mail_from: str = "noreply@pgstay.local"
    mail_from_name: str = "PGStay"

    # ---- Payment gateway (Razorpay) ----
    razorpay_key_id: str | None = None
    razorpay_key_secret: str | None = None
    razorpay_base_url: str = "https://api.razorpay.com/v1"
    payment_currency: str = "INR"

    # ---- Celery ----
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        # Hard fail: no dev-bypass auth in prod
        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
            if self.jwt_secret == "dev-change-me":
                raise ValueError("SECURITY: jwt_secret must be set in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")

        if not 1 <= int(self.rent_due_day) <= 28:
            raise ValueError("rent_due_day must be between 1 and 28")
        if not 1 <= int(self.salary_due_day) <= 28:
            raise ValueError("salary_due_day must be between 1 and 28")


settings = Settings()
