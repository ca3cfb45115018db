"""Markdown report generation for enriched property records."""

import os
import re
from typing import Any, Dict, List, Optional

import yaml

from models.constants import MIN_ATTENDANCE_PERCENT, PlotSizeMethod

APPROXIMATE_PLOT_FOOTNOTE = (
    "\\* Approximate: matched to a nearby registry title, not this exact address."
)


def _money(value: Optional[float]) -> str:
    return f"£{value:,.0f}" if value else "n/a"


class ReportGenerator:
    """Generator for per-property markdown reports with YAML frontmatter."""

    def __init__(self, output_dir: str = "output/reports"):
        """
        Initialize the generator.

        Args:
            output_dir: Directory reports are written to
        """
        self.output_dir = output_dir

    def generate_filename(self, record: Dict[str, Any]) -> str:
        """
        Format: <postcode>_<street>_<id>.md, lowercase.
        """
        prop = (record.get("data") or {}).get("property") or {}
        address = prop.get("address") or {}
        parts = []
        if address.get("postcode"):
            parts.append(self._sanitize_filename(address["postcode"]))
        if address.get("street_name"):
            parts.append(self._sanitize_filename(address["street_name"]))
        parts.append(self._sanitize_filename(str(record.get("id", "property"))))
        return ("_".join(p for p in parts if p) + ".md").lower()

    def _sanitize_filename(self, text: str) -> str:
        """Sanitize text for use in filename."""
        text = re.sub(r"[^\w\s-]", "", text)
        text = re.sub(r"[\s]+", "_", text)
        return text.strip("_")

    @staticmethod
    def plot_size_label(plot: Optional[Dict[str, Any]]) -> str:
        """Plot size in acres; approximate matches carry an asterisk."""
        if not plot or plot.get("plot_size_acres") is None:
            return "unavailable"
        label = f"{plot['plot_size_acres']:.2f} acres"
        method = plot.get("method")
        if method and method != PlotSizeMethod.ADDRESS_MATCH.value:
            label += "*"
        return label

    def generate_yaml_frontmatter(self, record: Dict[str, Any]) -> str:
        """Generate YAML frontmatter for the report."""
        data = record.get("data") or {}
        prop = data.get("property") or {}
        address = prop.get("address") or {}

        frontmatter: Dict[str, Any] = {
            "id": record.get("id"),
            "source_url": record.get("url"),
            "scraped_at": prop.get("scraped_at"),
        }

        location = {k: address[k] for k in ("display_address", "street_name", "door_number", "postcode") if address.get(k)}
        if prop.get("coordinates"):
            location["coordinates"] = prop["coordinates"]
        if location:
            frontmatter["location"] = location

        listing = {k: prop[k] for k in ("price", "price_per_sqft", "bedrooms", "bathrooms", "square_footage", "property_type") if prop.get(k) is not None}
        if listing:
            frontmatter["listing"] = listing

        plot = data.get("plot_size")
        if plot and plot.get("plot_size_acres") is not None:
            frontmatter["plot"] = {
                "acres": plot["plot_size_acres"],
                "method": plot.get("method"),
                "approximate": plot.get("method") != PlotSizeMethod.ADDRESS_MATCH.value,
            }

        market = data.get("market_data")
        if market and market.get("success"):
            valuation = market.get("valuation") or {}
            frontmatter["market"] = {
                "estimate": valuation.get("estimate"),
                "margin": valuation.get("margin"),
                "council_tax_band": (market.get("ownership") or {}).get("council_tax_band"),
            }

        tags = self._generate_tags(prop, data)
        if tags:
            frontmatter["tags"] = tags

        return yaml.dump(frontmatter, allow_unicode=True, sort_keys=False, default_flow_style=False)

    def _generate_tags(self, prop: Dict[str, Any], data: Dict[str, Any]) -> List[str]:
        tags = []
        if prop.get("property_type") and prop["property_type"] != "unknown":
            tags.append(prop["property_type"])
        if prop.get("bedrooms"):
            tags.append(f"{prop['bedrooms']}-bed")
        schools = data.get("schools") or {}
        if any(s.get("is_grammar") for s in (schools.get("secondary_schools") or [])):
            tags.append("grammar-school-nearby")
        if ((data.get("market_data") or {}).get("ownership") or {}).get("is_conservation_area"):
            tags.append("conservation-area")
        return tags

    def _stations_section(self, title: str, stations: Optional[List[Dict[str, Any]]], key: str) -> List[str]:
        lines = [f"### {title}\n"]
        if stations is None:
            lines.append("Data unavailable.\n")
            return lines
        if not stations:
            lines.append("None nearby.\n")
            return lines
        for station in stations:
            meta = ", ".join(station.get(key) or [])
            walk = f"{station['walking_time']} min walk" if station.get("walking_time") is not None else "walk n/a"
            lines.append(f"- **{station['name']}** ({walk}){': ' + meta if meta else ''}")
        lines.append("")
        return lines

    def _schools_section(self, schools: Optional[Dict[str, Any]]) -> List[str]:
        lines = ["## Schools Attended\n"]
        if not schools or not schools.get("success"):
            lines.append("Data unavailable.\n")
            return lines
        if schools.get("area_name"):
            lines.append(f"Neighbourhood: {schools['area_name']}\n")
        for phase in ("primary", "secondary"):
            shown = [s for s in schools.get(f"{phase}_schools") or [] if s.get("percentage", 0) >= MIN_ATTENDANCE_PERCENT]
            lines.append(f"### {phase.title()}\n")
            if not shown:
                lines.append("None above 1% attendance.\n")
                continue
            lines.append("| School | Attendance | Ofsted | Distance | Walk |")
            lines.append("|---|---|---|---|---|")
            for s in shown:
                name = s["name"] + (" (Grammar)" if s.get("is_grammar") else "")
                distance = f"{s['crow_flies_distance']:.2f} km" if s.get("crow_flies_distance") is not None else "-"
                walk = f"{s['walking_time']} min" if s.get("walking_time") is not None else "-"
                lines.append(f"| {name} | {s['percentage']:.1f}% | {s.get('ofsted_rating') or '-'} | {distance} | {walk} |")
            lines.append("")
        return lines

    def _market_section(self, market: Optional[Dict[str, Any]]) -> List[str]:
        lines = ["## Market Data\n"]
        if not market or not market.get("success"):
            lines.append("Data unavailable.\n")
            return lines
        valuation = market.get("valuation") or {}
        growth = market.get("growth") or {}
        ownership = market.get("ownership") or {}
        risks = market.get("risks") or {}
        comparables = market.get("comparables") or {}
        lines.append(f"- Estimated value: {_money(valuation.get('estimate'))}"
                     + (f" ({valuation['margin']})" if valuation.get("margin") else ""))
        if growth.get("five_year") is not None:
            lines.append(f"- 5-year growth: {growth['five_year']:+.1f}% ({growth.get('trend')})")
        if ownership.get("council_tax_band"):
            lines.append(f"- Council tax band: {ownership['council_tax_band']}")
        if ownership.get("is_conservation_area"):
            lines.append("- Conservation area: yes")
        if risks.get("crime_rating"):
            lines.append(f"- Crime: {risks['crime_rating']}")
        if risks.get("flood_risk"):
            lines.append(f"- Flood risk: {risks['flood_risk']}")
        if comparables.get("count"):
            lines.append(
                f"- Comparable sales: {comparables['count']} averaging {_money(comparables.get('average_price'))}"
                f" ({comparables.get('time_range')})"
            )
        lines.append("")
        return lines

    def generate_markdown_content(self, record: Dict[str, Any]) -> str:
        """Generate the markdown body content."""
        data = record.get("data") or {}
        prop = data.get("property") or {}
        address = prop.get("address") or {}
        content = [f"# {address.get('display_address') or record.get('id')}\n"]

        summary_parts = [_money(prop.get("price"))]
        if prop.get("bedrooms") is not None:
            summary_parts.append(f"{prop['bedrooms']} bed")
        if prop.get("square_footage"):
            summary_parts.append(f"{prop['square_footage']:,.0f} sq ft")
        plot = data.get("plot_size")
        summary_parts.append(f"Plot: {self.plot_size_label(plot)}")
        content.append(" | ".join(summary_parts) + "\n")

        epc = prop.get("epc") or {}
        if epc.get("current_rating"):
            content.append(f"EPC: {epc['current_rating']} (potential {epc.get('potential_rating') or 'n/a'})\n")

        content.extend(self._market_section(data.get("market_data")))

        content.append("## Transport\n")
        content.extend(self._stations_section("Rail", prop.get("nearest_stations"), "operators"))
        content.extend(self._stations_section("Underground", prop.get("nearest_tube_stations"), "lines"))

        commute = data.get("commute") or {}
        if commute:
            content.append("### Commute\n")
            for name, c in commute.items():
                diff = f", {c['benchmark_diff_text']}" if c.get("benchmark_diff_text") else ""
                content.append(f"- {name}: {c['duration_text']} (arrive {c['arrival_time']}{diff})")
            content.append("")

        content.extend(self._schools_section(data.get("schools")))

        summary = data.get("summary") or {}
        if summary.get("analysis"):
            content.append(f"## Buyer Analysis ({summary.get('model')})\n")
            content.append(summary["analysis"].strip() + "\n")

        if plot and plot.get("plot_size_acres") is not None and plot.get("method") != PlotSizeMethod.ADDRESS_MATCH.value:
            content.append(APPROXIMATE_PLOT_FOOTNOTE + "\n")

        content.append(f"Source: [{prop.get('source_portal', 'listing')}]({record.get('url')})")
        return "\n".join(content)

    def generate_report_file(self, record: Dict[str, Any]) -> str:
        """
        Write the report for ``record``.

        Returns:
            Path to the generated file
        """
        os.makedirs(self.output_dir, exist_ok=True)
        filepath = os.path.join(self.output_dir, self.generate_filename(record))

        frontmatter = self.generate_yaml_frontmatter(record)
        body = self.generate_markdown_content(record)
        full_content = f"---\n{frontmatter}---\n\n{body}\n"

        temp_path = filepath + ".tmp"
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(full_content)
        os.replace(temp_path, filepath)
        return filepath
