from pathlib import Path

# Define the project root directory
ROOT_DIR = Path(__file__).parent.parent

# Define paths to other important directories
DATA_DIR = ROOT_DIR / "data"
INCOMING_DIR = DATA_DIR / "incoming"
PROCESSED_DIR = DATA_DIR / "processed"
REJECTED_DIR = DATA_DIR / "rejected"
OUTPUTS_DIR = ROOT_DIR / "outputs"
