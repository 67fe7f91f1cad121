"""
Sharing of the diagnostics results zip through S3.

Called after a run, never from inside it.
"""

import logging
import os
from typing import Any, Optional

import boto3
import certifi
from botocore.config import Config
from tenacity import retry, stop_after_attempt, wait_exponential

from feasibility.constants import EXPORT_FOLDER_NAME, SYMBOLS

logger = logging.getLogger(__name__)

AWS_REGION = os.environ.get("FEASIBILITY_AWS_REGION", "us-east-1")

# Configure boto3 with retries
boto3_config = Config(
    retries=dict(
        max_attempts=3,
        mode='adaptive'
    ),
    connect_timeout=5,
    read_timeout=60,
    region_name=AWS_REGION
)


def get_s3_client() -> Any:
    return boto3.client("s3", config=boto3_config, verify=certifi.where())


def get_results_zip_path(output_folder: str, database_id: str) -> str:
    return os.path.join(output_folder, EXPORT_FOLDER_NAME, f"Results_{database_id}.zip")


def build_results_key(database_id: str, key_prefix: str = "feasibility") -> str:
    key_prefix = key_prefix.strip("/")
    file_name = f"Results_{database_id}.zip"
    return f"{key_prefix}/{database_id}/{file_name}" if key_prefix else f"{database_id}/{file_name}"


@retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=4, max=10), reraise=True)
def _upload_file(s3_client, file_path: str, bucket: str, key: str) -> None:
    with open(file_path, "rb") as f:
        s3_client.upload_fileobj(f, bucket, key)


def upload_results(output_folder: str,
                   database_id: str,
                   bucket: str,
                   key_prefix: str = "feasibility",
                   s3_client: Optional[Any] = None) -> str:
    """Upload Results_<database_id>.zip from the export folder to S3.

    Returns:
        s3:// URI of the uploaded object
    """
    zip_path = get_results_zip_path(output_folder, database_id)
    if not os.path.exists(zip_path):
        raise FileNotFoundError(f"Results zip not found: {zip_path}. Run the diagnostics first.")

    key = build_results_key(database_id, key_prefix)
    s3_uri = f"s3://{bucket}/{key}"
    try:
        _upload_file(s3_client or get_s3_client(), zip_path, bucket, key)
    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} Error uploading {zip_path} to {s3_uri}: {str(e)}")
        raise

    logger.info(f"{SYMBOLS['success']} Uploaded results to {s3_uri}")
    return s3_uri
