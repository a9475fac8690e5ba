import os
from dotenv import load_dotenv


class Settings:
    """
    Application configuration loaded from environment variables.

    Pull values from .env file or set as environment variables.
    """

    def __init__(self) -> None:
        load_dotenv()

        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
        self.OPENAI_API_BASE_URL = os.getenv("OPENAI_API_BASE_URL")
        self.MODEL_NAME = os.getenv("MODEL_NAME", "gpt-4o-mini")
        self.LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))

        # Expansion loop
        self.MAX_ROUNDS = int(os.getenv("MAX_ROUNDS", "2"))
        self.COMPLETENESS_THRESHOLD = float(os.getenv("COMPLETENESS_THRESHOLD", "0.72"))
        self.MAX_WORKERS = int(os.getenv("MAX_WORKERS", "4"))

        # Output
        self.OUTPUT_DIR = os.getenv("OUTPUT_DIR", "./output")

        # Neo4j
        self.NEO4J_URI = os.getenv("NEO4J_URI", "bolt://localhost:7687")
        self.NEO4J_USER = os.getenv("NEO4J_USER", "neo4j")
        self.NEO4J_PASSWORD = os.getenv("NEO4J_PASSWORD", "testpassword")


settings = Settings()
