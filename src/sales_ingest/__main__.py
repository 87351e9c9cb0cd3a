from sales_ingest.cli import run

run()
