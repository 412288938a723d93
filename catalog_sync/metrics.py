"""Prometheus metrics for the catalog ingestion service."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("catalog_sync", "Catalog sync application info")
app_info.info({"version": "0.1.0", "name": "catalog-sync"})

# HTTP fetcher
fetch_attempts_total = Counter(
    "catalog_fetch_attempts_total",
    "Total number of retailer HTTP attempts",
    ["outcome"],
)

# Ingestion
products_ingested_total = Counter(
    "catalog_products_ingested_total",
    "Products processed by category scrapes",
    ["brand", "outcome"],
)

category_scrape_duration_seconds = Histogram(
    "catalog_category_scrape_duration_seconds",
    "Time spent scraping a single category",
    ["brand"],
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0],
)

sibling_links_total = Counter(
    "catalog_sibling_links_total",
    "Product-to-aggregator associations created",
)

# Job queue
scrape_jobs_total = Counter(
    "catalog_scrape_jobs_total",
    "Scrape jobs reaching a terminal or requeued state",
    ["status"],
)

# Scheduler
scheduler_runs_total = Counter(
    "catalog_scheduler_runs_total",
    "Total number of scheduler runs",
    ["job_type", "status"],
)

scheduler_last_run_timestamp = Gauge(
    "catalog_scheduler_last_run_timestamp",
    "Timestamp of last scheduler run",
    ["job_type"],
)


def record_fetch_attempt(success: bool):
    """Record a single HTTP attempt made by the fetcher."""
    fetch_attempts_total.labels(outcome="success" if success else "error").inc()


def record_product_outcome(brand: str, outcome: str):
    """Record a product outcome (created, updated, rejected, failed)."""
    products_ingested_total.labels(brand=brand, outcome=outcome).inc()


def record_category_scrape(brand: str, duration: float):
    """Record the duration of a category scrape."""
    category_scrape_duration_seconds.labels(brand=brand).observe(duration)


def record_sibling_links(count: int):
    """Record newly created aggregator associations."""
    if count:
        sibling_links_total.inc(count)


def record_job_status(status: str):
    """Record a job reaching a status."""
    scrape_jobs_total.labels(status=status).inc()


def record_scheduler_run(job_type: str, success: bool):
    """Record a scheduler job run."""
    status = "success" if success else "error"
    scheduler_runs_total.labels(job_type=job_type, status=status).inc()
    scheduler_last_run_timestamp.labels(job_type=job_type).set(time.time())
