import argparse
import logging
from datetime import date, datetime

from httpx import Client

from billing_desk.cache import QueryCache
from billing_desk.catalog import PricingCatalogManager
from billing_desk.config import settings
from billing_desk.cura.branding import CuraBranding
from billing_desk.cura.entities import Catalog
from billing_desk.cura.invoices import CuraInvoice
from billing_desk.cura.patients import CuraPatient
from billing_desk.cura.pricing import CuraPricing
from billing_desk.cura.users import CuraUser
from billing_desk.documents import csv_filename, render_revenue_report_pdf, report_filename, write_download
from billing_desk.errors import BillingError
from billing_desk.notices import Notifier
from billing_desk.reporting import (
    DateRange,
    ReportFilters,
    breakdown_to_csv,
    build_revenue_breakdown,
    resolve_date_range,
    summarize,
)
from billing_desk.sheets import GoogleSheetsClient

logger = logging.getLogger(__name__)


def get_http_client() -> Client:
    return Client(base_url=settings.CURA_API_URL, timeout=30)


def get_api(api_cls, http_client: Client):
    return api_cls(
        http_client=http_client,
        auth_token=settings.CURA_AUTH_TOKEN,
        subdomain=settings.CURA_TENANT_SUBDOMAIN,
    )


def export_revenue_report(filters: ReportFilters, output_format: str) -> str:
    http_client = get_http_client()
    invoices = get_api(CuraInvoice, http_client).get_invoices()
    doctor_fees = get_api(CuraPricing, http_client).get_entries(Catalog.DOCTORS_FEES)
    users = get_api(CuraUser, http_client).get_all_users()

    rows = build_revenue_breakdown(invoices, doctor_fees, filters, users)
    logger.info("Revenue breakdown has %s service rows from %s invoices", len(rows) - 1, len(invoices))

    today = date.today()

    if output_format == "csv":
        return str(write_download(settings.REPORTS_DIR, csv_filename(today), breakdown_to_csv(rows)))

    if output_format == "sheet":
        if not settings.GOOGLE_SPREADSHEET_KEY:
            raise SystemExit("GOOGLE_SPREADSHEET_KEY is not configured")
        sheets_client = GoogleSheetsClient.connect(
            google_sheets_key=settings.GOOGLE_SPREADSHEET_KEY,
            worksheet_name=settings.GOOGLE_WORKSHEET_NAME,
            token_path=settings.GOOGLE_TOKEN_PATH,
        )
        period_label = filters.describe()
        sheets_client.write_revenue_breakdown(period_label, rows)
        return period_label

    patient = None
    if filters.patient_id:
        patients = get_api(CuraPatient, http_client).get_all_patients()
        patient = next((p for p in patients if p.patient_id == filters.patient_id), None)

    branding = get_api(CuraBranding, http_client)
    pdf = render_revenue_report_pdf(
        rows,
        summarize(rows),
        filters_label=filters.describe(),
        patient=patient,
        header=branding.get_clinic_header(),
        footer=branding.get_clinic_footer(),
        currency_symbol=settings.CURRENCY_SYMBOL,
    )
    return str(write_download(settings.REPORTS_DIR, report_filename("revenue-breakdown", today), pdf))


def seed_catalog(catalog: Catalog) -> int:
    notifier = Notifier()
    manager = PricingCatalogManager(
        pricing=get_api(CuraPricing, get_http_client()),
        cache=QueryCache(),
        notifier=notifier,
        currency=settings.CURRENCY,
    )
    manager.select_tab(catalog)
    result = manager.seed_defaults(catalog)

    for notice in notifier.notices:
        print(f"{notice.title}: {notice.description}")

    return 0 if result is not None and result.failed == 0 else 1


def parse_date_arg(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="billing_desk", description="Practice billing tools")
    commands = parser.add_subparsers(dest="command", required=True)

    report = commands.add_parser("report", help="export the revenue breakdown")
    report.add_argument(
        "--range", dest="date_range", default=DateRange.THIS_MONTH.value, choices=[r.value for r in DateRange]
    )
    report.add_argument("--from", dest="start", type=parse_date_arg)
    report.add_argument("--to", dest="end", type=parse_date_arg)
    report.add_argument("--insurance", default="all")
    report.add_argument("--role", default="all")
    report.add_argument("--user", dest="user_id", type=int)
    report.add_argument("--patient", dest="patient_id")
    report.add_argument("--search", default="")
    report.add_argument("--format", dest="output_format", default="csv", choices=["csv", "pdf", "sheet"])

    seed = commands.add_parser("seed", help="add missing default entries to a pricing catalog")
    seed.add_argument("catalog", choices=[c.value for c in Catalog])

    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "report" and DateRange(args.date_range) == DateRange.CUSTOM:
        try:
            resolve_date_range(DateRange.CUSTOM, datetime.now(), start=args.start, end=args.end)
        except ValueError as e:
            parser.error(str(e))

    try:
        if args.command == "seed":
            return seed_catalog(Catalog(args.catalog))

        filters = ReportFilters(
            date_range=DateRange(args.date_range),
            start=args.start,
            end=args.end,
            insurance_type=args.insurance,
            role=args.role,
            user_id=args.user_id,
            patient_id=args.patient_id,
            search=args.search,
        )
        destination = export_revenue_report(filters, args.output_format)
    except BillingError as e:
        logger.error("%s", e)
        return 1

    logger.info("Revenue report exported to %s", destination)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
