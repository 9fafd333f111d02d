from dotenv import load_dotenv
import os

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI")
MONGODB_DATABASE_NAME = os.getenv("MONGODB_DATABASE_NAME", "fingerprint_trust")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# IP trust heuristic
SUSPICIOUS_THRESHOLD = int(os.getenv("SUSPICIOUS_THRESHOLD", "10"))  # Hits before a primary address is established
SUSPICIOUS_WINDOW_HOURS = float(os.getenv("SUSPICIOUS_WINDOW_HOURS", "24"))  # Grace period after registration

# Compare-and-set attempts before a write surfaces as a conflict
TRANSACTION_MAX_RETRIES = int(os.getenv("TRANSACTION_MAX_RETRIES", "3"))
