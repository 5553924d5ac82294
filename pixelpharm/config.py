"""
Application configuration and settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # API Settings
    APP_NAME: str = "PixelPharm API"
    APP_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://localhost/pixelpharm"
    RESET_DATABASE: bool = False

    # Anthropic API
    ANTHROPIC_API_KEY: str = ""
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    CLAUDE_MAX_TOKENS: int = 4000

    # AWS (S3 + Textract)
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_S3_BUCKET_NAME: str = "pixelpharm-uploads"
    PRESIGNED_URL_EXPIRES: int = 900  # 15 minutes

    # Extraction - backends are tried in this order
    OCR_BACKENDS: str = "claude,textract"

    # Uploads
    MAX_UPLOAD_SIZE_MB: int = 10
    ALLOWED_FILE_TYPES: str = "image/jpeg,image/png,application/pdf,text/plain"

    # Upload limits per plan
    BASIC_UPLOADS_PER_MONTH: int = 5
    PRO_TOTAL_UPLOADS: int = 20
    PRO_ACCESS_DAYS: int = 30

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,https://pixelpharm.com"

    @property
    def database_url(self) -> str:
        """Database URL with the legacy postgres:// scheme normalized"""
        if self.DATABASE_URL.startswith("postgres://"):
            return self.DATABASE_URL.replace("postgres://", "postgresql://", 1)
        return self.DATABASE_URL

    @property
    def ocr_backend_list(self) -> List[str]:
        return [b.strip().lower() for b in self.OCR_BACKENDS.split(",") if b.strip()]

    @property
    def allowed_file_types_list(self) -> List[str]:
        return [t.strip() for t in self.ALLOWED_FILE_TYPES.split(",") if t.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

        # Accept both schemes for every configured host
        expanded = []
        for origin in origins:
            expanded.append(origin)
            if origin.startswith("https://"):
                expanded.append(origin.replace("https://", "http://", 1))
            elif origin.startswith("http://"):
                expanded.append(origin.replace("http://", "https://", 1))
            else:
                expanded.append(f"https://{origin}")
                expanded.append(f"http://{origin}")

        return sorted(set(expanded))


# Create settings instance
settings = Settings()


# Blood test extraction prompt for Claude vision
BLOOD_TEST_EXTRACTION_PROMPT = """You are an expert medical data extraction AI. Analyze this blood test document and extract ALL biomarker data with extreme precision.

EXTRACTION REQUIREMENTS:
1. Extract every numerical value with its corresponding biomarker name
2. Include units (mg/dL, mmol/L, %, etc.)
3. Identify reference ranges where visible
4. Determine if values are normal, high, low, or critical
5. Extract test date and lab name
6. Categorize biomarkers (lipids, diabetes, liver, kidney, thyroid, general)

CRITICAL ACCURACY FACTORS:
- Pay special attention to decimal points and units
- Distinguish between similar characters (6 vs 8, 1 vs I)
- Capture both individual test results and calculated ratios

Return ONLY valid JSON in this format (no markdown, no explanation):
{
  "biomarkers": [
    {
      "name": "Total Cholesterol",
      "value": 220,
      "unit": "mg/dL",
      "referenceRange": "< 200",
      "status": "high",
      "category": "lipids"
    }
  ],
  "testInfo": {
    "testDate": "2024-07-25",
    "labName": "LabCorp"
  },
  "extractedText": "full text content...",
  "confidence": "high"
}

Analyze this blood test document now:"""


# Health analysis prompt - biomarker JSON is substituted in
HEALTH_ANALYSIS_PROMPT = """You are a clinical health analytics assistant. Review the patient's biomarker results and body composition and produce an educational health analysis. You do not diagnose.

PATIENT PROFILE:
{profile}

BIOMARKERS (most recent first):
{biomarkers}

BODY COMPOSITION:
{body_composition}

Return ONLY valid JSON in this format:
{{
  "healthScore": 0-100,
  "riskLevel": "LOW" | "MODERATE" | "HIGH" | "CRITICAL",
  "keyFindings": ["..."],
  "recommendations": [
    {{"category": "...", "priority": "high|moderate|low", "recommendation": "...", "reasoning": "..."}}
  ],
  "abnormalValues": [
    {{"biomarker": "...", "value": 0, "concern": "...", "urgency": "urgent|routine"}}
  ],
  "trends": [
    {{"biomarker": "...", "trend": "improving|stable|declining", "timeframe": "..."}}
  ],
  "summary": "..."
}}"""
