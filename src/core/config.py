"""
Configuration management for the CDR engine
"""

import os
from pathlib import Path
from typing import Dict, Any

from dotenv import load_dotenv


# Base paths
BASE_DIR = Path(__file__).parent.parent.parent
CDR_DIR = Path(__file__).parent / "cdr"
DEFAULT_CORPUS_PATH = CDR_DIR / "data" / "clinical-decision-rules.md"

load_dotenv(BASE_DIR / ".env")


class Config:
    """Main configuration class for the CDR engine"""

    def __init__(self):
        # Corpus, catalog and context assembly
        self.cdr_config = {
            'corpus_path': Path(os.getenv('CDR_CORPUS_PATH', DEFAULT_CORPUS_PATH)),
            'max_context_chars': int(os.getenv('CDR_MAX_CONTEXT_CHARS', 16000)),  # ~4K tokens
            'structured_max_chars': 12000,
            'structured_limit': 10,
        }

        # Structured definition publishing (document store sink)
        self.publish_config = {
            'output_dir': BASE_DIR / 'build' / 'cdr_library',
            'skip_embeddings': True,
            'embedding_url': os.getenv('CDR_EMBEDDING_URL', ''),
            'embedding_token': os.getenv('CDR_EMBEDDING_TOKEN', ''),
            'embedding_dimension': 768,
            'embedding_timeout': 30,  # seconds
        }

        # HTTP surface
        self.api_config = {
            'title': 'CDR Engine API',
            'version': '1.0.0',
            'cors_origins': ["http://localhost:5173", "http://localhost:3000"],
        }

        # Logging
        self.logging_config = {
            'level': os.getenv('LOG_LEVEL', 'INFO'),
            'format': '%(asctime)s [%(name)s] %(levelname)s: %(message)s',
        }

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get a configuration section by name ('cdr', 'publish', 'api', 'logging')"""
        return getattr(self, f'{section.lower()}_config', {})

    def update_config(self, section: str, updates: Dict[str, Any]) -> None:
        """Update a configuration section"""
        if hasattr(self, f'{section}_config'):
            config = getattr(self, f'{section}_config')
            config.update(updates)
        else:
            raise ValueError(f"Unknown configuration section: {section}")


# Global configuration instance
config = Config()
