import os
from dotenv import load_dotenv

# Development reads .env, production deployments ship .env.production
env_file = '.env.production' if os.path.exists('.env.production') else '.env'
# load_dotenv never overrides variables already set in the environment
load_dotenv(env_file, override=False)


class Settings:
    def __init__(self):
        # Application
        self.app_name = os.getenv("APP_NAME", "VX Academy API")
        self.app_version = os.getenv("APP_VERSION", "1.0.0")

        # Database
        self.database_url = os.getenv("DATABASE_URL")
        if not self.database_url:
            raise ValueError("DATABASE_URL environment variable is required")

        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        # CORS
        self.allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")

        # Security
        self.secret_key = os.getenv("SECRET_KEY")
        self.algorithm = os.getenv("ALGORITHM", "HS256")
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 120))
        self.refresh_token_expire_days = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", 30))

        # Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Certificates
        self.certificate_output_dir = os.getenv("CERTIFICATE_OUTPUT_DIR", "certificates")
        self.certificate_template_dir = os.getenv("CERTIFICATE_TEMPLATE_DIR", "certificate_templates")
        self.certificate_validity_days = int(os.getenv("CERTIFICATE_VALIDITY_DAYS", 730))

        # Assessments
        self.default_passing_score = int(os.getenv("DEFAULT_PASSING_SCORE", 70))

        # Scheduler
        self.scheduler_enabled = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
        self.course_reminder_hour = int(os.getenv("COURSE_REMINDER_HOUR", 8))

    def get_certificate_template_path(self, template: str) -> str:
        """
        Resolve a certificate template reference to a filesystem path.

        Absolute paths are returned unchanged, bare names are looked up in
        the configured template directory.
        """
        if os.path.isabs(template):
            return template
        return os.path.join(self.certificate_template_dir, os.path.basename(template))


settings = Settings()
