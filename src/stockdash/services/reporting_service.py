from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from stockdash.domain.errors import ValidationError
from stockdash.domain.models import (
    CategoryBreakdown,
    DailySalesSummary,
    DashboardStats,
    HourlySlot,
    Sale,
    TopProduct,
)
from stockdash.services import analytics

log = logging.getLogger(__name__)


class ReportingService:
    def __init__(self, repo):
        self.repo = repo

    def _sales(self, days: Optional[int], now: Optional[datetime] = None) -> list[Sale]:
        if days is None:
            return self.repo.list_sales()
        if int(days) not in analytics.REPORT_WINDOWS:
            raise ValidationError(f"Report window must be one of {analytics.REPORT_WINDOWS} days.")
        since = (now or datetime.now()) - timedelta(days=int(days))
        return self.repo.list_sales_since(since)

    def dashboard(self, today: Optional[date] = None) -> DashboardStats:
        return analytics.dashboard_stats(self.repo.list_products(), self.repo.list_sales(), today=today)

    def daily_sales(self, days: Optional[int] = None, now: Optional[datetime] = None) -> list[DailySalesSummary]:
        return analytics.daily_sales(self._sales(days, now))

    def hourly_sales(self, days: Optional[int] = None, now: Optional[datetime] = None) -> list[HourlySlot]:
        return analytics.hourly_sales(self._sales(days, now))

    def top_selling(self, limit: int = 5, days: Optional[int] = None, now: Optional[datetime] = None) -> list[TopProduct]:
        return analytics.top_selling_products(self.repo.list_products(), self._sales(days, now), limit=limit)

    def category_breakdown(self, days: Optional[int] = None, now: Optional[datetime] = None) -> list[CategoryBreakdown]:
        return analytics.category_breakdown(self.repo.list_products(), self._sales(days, now))

    def export_sales_report_excel(self, path: str, days: int = 30, now: Optional[datetime] = None) -> None:
        now = now or datetime.now()
        products = self.repo.list_products()
        sales = self._sales(days, now)

        stats = analytics.dashboard_stats(products, sales, today=now.date())
        daily = analytics.daily_sales(sales)
        hourly = analytics.hourly_sales(sales)
        top = analytics.top_selling_products(products, sales, limit=10)
        categories = analytics.category_breakdown(products, sales)

        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, end_col: int):
            if ws.max_row < 2:
                return
            ref = f"A1:{get_column_letter(end_col)}{ws.max_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Summary"
        ws["A1"].font = Font(bold=True, size=14)

        ws["A3"] = "Window"
        ws["B3"] = f"Last {int(days)} days (to {now.replace(microsecond=0).isoformat(sep=' ')})"

        rows = [
            ("Products", stats.total_products, "int"),
            ("Inventory value", stats.total_inventory_value, "money"),
            ("Sales count", stats.total_count, "int"),
            ("Revenue", stats.total_sales, "money"),
            ("Profit", stats.total_profit, "money"),
            ("Profit margin %", round(stats.profit_margin, 2), "pct"),
        ]
        start_row = 5
        for i, (label, val, kind) in enumerate(rows):
            r = start_row + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if kind == "money":
                money(ws[f"B{r}"])
        set_widths(ws, {"A": 22, "B": 40})

        # -------- 2) Daily --------
        ws2 = wb.create_sheet("Daily")
        ws2.append(["Date", "Total", "Profit", "Sales"])
        bold_row(ws2, 1)
        for d in daily:
            ws2.append([d.date, d.total, d.profit, d.count])
            money(ws2[f"B{ws2.max_row}"])
            money(ws2[f"C{ws2.max_row}"])
        ws2.freeze_panes = "A2"
        set_widths(ws2, {"A": 14, "B": 16, "C": 16, "D": 8})
        add_table(ws2, "DailySales", 4)

        # -------- 3) Hourly --------
        ws3 = wb.create_sheet("Hourly")
        ws3.append(["Hour", "Sales", "Count"])
        bold_row(ws3, 1)
        for h in hourly:
            ws3.append([f"{h.hour:02d}:00", h.sales, h.count])
            money(ws3[f"B{ws3.max_row}"])
        set_widths(ws3, {"A": 8, "B": 16, "C": 8})
        add_table(ws3, "HourlySales", 3)

        # -------- 4) Top products --------
        ws4 = wb.create_sheet("Top Products")
        ws4.append(["Product", "Category", "Units Sold", "Revenue"])
        bold_row(ws4, 1)
        for t in top:
            ws4.append([t.name, t.category, t.units_sold, t.revenue])
            money(ws4[f"D{ws4.max_row}"])
        set_widths(ws4, {"A": 34, "B": 14, "C": 10, "D": 16})
        add_table(ws4, "TopProducts", 4)

        # -------- 5) Categories --------
        ws5 = wb.create_sheet("Categories")
        ws5.append(["Category", "Products", "Units Sold", "Revenue", "Profit"])
        bold_row(ws5, 1)
        for c in categories:
            ws5.append([c.category, c.products, c.units_sold, c.revenue, c.profit])
            money(ws5[f"D{ws5.max_row}"])
            money(ws5[f"E{ws5.max_row}"])
        set_widths(ws5, {"A": 14, "B": 10, "C": 10, "D": 16, "E": 16})
        add_table(ws5, "Categories", 5)

        wb.save(path)
        log.info("report_exported path=%s days=%s sales=%s", path, days, len(sales))
