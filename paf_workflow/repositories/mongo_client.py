"""MongoDB Client - Connection and Collection Management"""
from typing import Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
            tz_aware=True,
        )
        # Test connection
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    # Workflow templates collection
    templates = db["workflow_templates"]
    templates.create_index("template_id", unique=True)
    templates.create_index([("tenant_id", ASCENDING), ("name", ASCENDING)])

    # Submissions collection
    submissions = db["paf_submissions"]
    submissions.create_index("submission_id", unique=True)
    submissions.create_index([("tenant_id", ASCENDING), ("status", ASCENDING)])
    submissions.create_index([("submitted_by", ASCENDING), ("created_at", DESCENDING)])
    submissions.create_index("template_id")
    submissions.create_index("created_at", background=True)

    # Approval ledger: one entry per (submission, step)
    approval_steps = db["approval_steps"]
    approval_steps.create_index([("submission_id", ASCENDING), ("step", ASCENDING)], unique=True)
    approval_steps.create_index([("approver_role", ASCENDING), ("status", ASCENDING)])

    # Audit events collection
    audit_events = db["audit_events"]
    audit_events.create_index("audit_event_id", unique=True)
    audit_events.create_index([("submission_id", ASCENDING), ("timestamp", ASCENDING)])
    audit_events.create_index("timestamp", background=True)
    audit_events.create_index("correlation_id")

    logger.info("MongoDB indexes created successfully")
