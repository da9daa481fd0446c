"""Spreadsheet export of bookings (CSV for Excel in a French locale)."""

import csv
import io
from collections.abc import Iterable

from app.models.booking import Booking

COLUMNS = (
    "Date",
    "Heure",
    "Terrain",
    "Code de réservation",
    "Pseudo",
    "Nom",
    "Prénom",
    "Email",
    "Téléphone",
    "Prix terrain",
    "Réduction",
    "Montant à payer",
    "Montant encaissé",
)


def format_euros(cents: int | None) -> str:
    """1550 -> '15,50'. Comma decimal separator."""
    cents = cents or 0
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100},{cents % 100:02d}"


def booking_row(booking: Booking) -> dict:
    profile = booking.profile
    listed = booking.original_amount if booking.original_amount is not None else booking.total_amount
    return {
        "Date": booking.booking_date.strftime("%d/%m/%Y"),
        "Heure": f"{booking.start_time.strftime('%H:%M')} - {booking.end_time.strftime('%H:%M')}",
        "Terrain": booking.court.name,
        "Code de réservation": booking.booking_code,
        "Pseudo": profile.username,
        "Nom": profile.last_name,
        "Prénom": profile.first_name,
        "Email": profile.email or "",
        "Téléphone": profile.phone or "",
        "Prix terrain": format_euros(listed),
        "Réduction": format_euros(booking.promotion_discount),
        "Montant à payer": format_euros(booking.total_amount),
        "Montant encaissé": format_euros(booking.amount_paid),
    }


def bookings_to_csv(bookings: Iterable[Booking]) -> bytes:
    """Render bookings as a ';'-separated CSV, UTF-8 with BOM so Excel picks the encoding."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=COLUMNS, delimiter=";")
    writer.writeheader()
    for booking in bookings:
        writer.writerow(booking_row(booking))
    return output.getvalue().encode("utf-8-sig")
