import os

MONGO_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DB_NAME = os.getenv("DATABASE_NAME", "learnhub")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", str(5 * 24 * 60)))
COOKIE_EXPIRE_DAYS = int(os.getenv("COOKIE_EXPIRE_DAYS", "5"))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

RESET_CODE_DIGITS = int(os.getenv("RESET_CODE_DIGITS", "5"))
RESET_CODE_TTL_MINUTES = int(os.getenv("RESET_CODE_TTL_MINUTES", "15"))

# Transactional email over HTTP (Brevo-compatible payload)
MAIL_API_URL = os.getenv("MAIL_API_URL", "")
MAIL_API_KEY = os.getenv("MAIL_API_KEY", "")
MAIL_SENDER = os.getenv("MAIL_SENDER", "")
MAIL_SENDER_NAME = os.getenv("MAIL_SENDER_NAME", "LearnHub")
MAIL_TIMEOUT_SECONDS = float(os.getenv("MAIL_TIMEOUT_SECONDS", "10"))

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "learnhub")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
