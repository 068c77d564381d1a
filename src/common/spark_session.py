"""
SparkSession helpers for the Top-N job.

Spark is the execution substrate: it runs the per-partition tasks,
retries the failed ones and performs the shuffle between the combine and
reduce stages.

JVM logging is configured via conf/log4j2.properties to:
- Write INFO logs to .logs/spark.log
- Only show ERROR on the console (stdout carries the Top-N result)
"""

import logging
import os
from pathlib import Path

from pyspark.sql import SparkSession

logger = logging.getLogger(__name__)

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Path to log4j2 config
LOG4J2_CONFIG = PROJECT_ROOT / "conf" / "log4j2.properties"

# Final app name will be: APP_NAME_PREFIX-<JobName>
APP_NAME_PREFIX = "TopN"

# The original job ran on two local cores
DEFAULT_MASTER = "local[2]"


def _snake_to_title(snake_str: str) -> str:
    """
    Convert snake_case string to TitleCase.

    Examples:
        top_n_job -> TopNJob
        take_ordered -> TakeOrdered
    """
    return "".join(word.capitalize() for word in snake_str.split("_"))


def build_app_name(script_id: str | None = None) -> str:
    """
    Build the Spark application name.

    Args:
        script_id: Either a file path (__file__), converted from snake_case
            to TitleCase, or a name used as-is

    Returns:
        "TopN" or "TopN-<Name>"
    """
    if not script_id:
        return APP_NAME_PREFIX
    if "/" in script_id or script_id.endswith(".py"):
        script_id = _snake_to_title(Path(script_id).stem)
    return f"{APP_NAME_PREFIX}-{script_id}"


def create_spark_session(
    script_name: str | None = None,
    master: str = DEFAULT_MASTER,
    shuffle_partitions: int | None = None,
) -> SparkSession:
    """
    Create (or reuse) a SparkSession with the job's defaults.

    Args:
        script_name: __file__ or a job name; see build_app_name()
        master: Spark master URL (default: local[2])
        shuffle_partitions: Value for spark.sql.shuffle.partitions and
            spark.default.parallelism, if given

    Returns:
        Configured SparkSession instance
    """
    (PROJECT_ROOT / ".logs").mkdir(exist_ok=True)
    app_name = build_app_name(script_name)

    # log4j resolves .logs/spark.log against the working directory
    original_cwd = os.getcwd()
    os.chdir(PROJECT_ROOT)

    try:
        builder = SparkSession.builder.appName(app_name).master(master)

        if LOG4J2_CONFIG.exists():
            builder = builder.config(
                "spark.driver.extraJavaOptions",
                f"-Dlog4j.configurationFile=file:{LOG4J2_CONFIG}",
            )

        if shuffle_partitions is not None:
            builder = builder.config("spark.sql.shuffle.partitions", str(shuffle_partitions)).config(
                "spark.default.parallelism", str(shuffle_partitions)
            )

        spark = (
            builder.config("spark.driver.memory", "2g")
            .config("spark.ui.showConsoleProgress", "false")
            .getOrCreate()
        )

        spark.sparkContext.setLogLevel("ERROR")
        logger.info("Spark session %s started on %s", app_name, master)

        return spark
    finally:
        os.chdir(original_cwd)

