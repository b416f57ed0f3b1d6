"""
Gear Share CLI

Command-line interface for the equipment exchange.
Provides commands for the directory, stock, requests, transactions and donations.

Usage:
    gear-share init --db gear.db
    gear-share school register --name "Royal College" --district Colombo --province "Western Province"
    gear-share equipment register --name "Cricket bat" --sport cricket
    gear-share stock add --provider-type school --provider-id <id> --equipment EQP000001 --quantity 12
    gear-share request create --school <id> --event-name "Zonal meet" --items '[...]'
    gear-share request respond --id REQ000001 --decision approved --actor-type school --actor-id <id>
    gear-share transaction overdue
"""

import json
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterator, Optional

import typer
from typing_extensions import Annotated

from gear_share.directory.models import ActorRef
from gear_share.exchange import GearShare
from gear_share.kernel.errors import GearShareError, ValidationError
from gear_share.kernel.logging import configure_logging
from gear_share.kernel.validation import parse_input

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=False, log_level="INFO")

app = typer.Typer(
    name="gear-share",
    help="Gear Share - Sports equipment exchange between schools",
    add_completion=False,
)

# Sub-apps
school_app = typer.Typer(help="School directory commands")
governing_body_app = typer.Typer(help="Governing body directory commands")
equipment_app = typer.Typer(help="Equipment catalog commands")
stock_app = typer.Typer(help="Provider stock commands")
request_app = typer.Typer(help="Equipment request lifecycle commands")
transaction_app = typer.Typer(help="Transaction commands")
donation_app = typer.Typer(help="Donation commands")

app.add_typer(school_app, name="school")
app.add_typer(governing_body_app, name="governing-body")
app.add_typer(equipment_app, name="equipment")
app.add_typer(stock_app, name="stock")
app.add_typer(request_app, name="request")
app.add_typer(transaction_app, name="transaction")
app.add_typer(donation_app, name="donation")

DEFAULT_DB = Path(".gear-share.db")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", envvar="GEAR_SHARE_DB", help="Database path"),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def get_gear_share(db_path: Optional[Path] = None) -> GearShare:
    """Get GearShare instance"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'gear-share init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return GearShare(str(db))


@contextmanager
def reporting_errors() -> Iterator[None]:
    """Turn domain errors into a one-line message and exit code 1"""
    try:
        yield
    except GearShareError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _json_option(value: str, option: str) -> object:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{option} is not valid JSON: {e.msg}", field=option) from e


def _decimal_option(value: str, option: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise ValidationError(f"{option} is not a number: {value!r}", field=option) from e


def _echo_json(data: object) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def _actor(actor_type: str, actor_id: str) -> ActorRef:
    return parse_input(ActorRef, actor_type=actor_type, actor_id=actor_id)


def _location(
    district: Optional[str],
    province: Optional[str],
    latitude: Optional[float],
    longitude: Optional[float],
) -> Optional[dict]:
    if district is None and province is None:
        return None
    location: dict = {"district": district, "province": province}
    if latitude is not None and longitude is not None:
        location["coordinates"] = {"latitude": latitude, "longitude": longitude}
    return location


# Initialization command


@app.command()
def init(db: DbOption = None) -> None:
    """Initialize a new Gear Share database"""
    db = db or DEFAULT_DB
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    GearShare(str(db))
    typer.echo(f"✓ Initialized Gear Share database: {db}")


@app.command()
def status(db: DbOption = None, json_output: JsonOption = False) -> None:
    """Show exchange counts"""
    gs = get_gear_share(db)
    snapshot = gs.status()

    if json_output:
        _echo_json(snapshot)
        return

    typer.echo(f"Events: {snapshot['event_count']}")
    typer.echo(f"Schools: {snapshot['schools']}")
    typer.echo(f"Governing bodies: {snapshot['governing_bodies']}")
    typer.echo(f"Equipment: {snapshot['equipment']}")
    typer.echo(f"Requests: {snapshot['requests'] or 'none'}")
    typer.echo(f"Transactions: {snapshot['transactions'] or 'none'}")
    typer.echo(f"Overdue rentals: {snapshot['overdue_rentals']}")


# Directory commands


@school_app.command("register")
def school_register(
    name: Annotated[str, typer.Option("--name", help="School name")],
    district: Annotated[str, typer.Option("--district", help="District, e.g. Colombo")],
    province: Annotated[str, typer.Option("--province", help="Province, e.g. \"Western Province\"")],
    latitude: Annotated[Optional[float], typer.Option("--lat", help="Latitude")] = None,
    longitude: Annotated[Optional[float], typer.Option("--lon", help="Longitude")] = None,
    principal: Annotated[
        Optional[str], typer.Option("--principal", help="Principal's name")
    ] = None,
    db: DbOption = None,
) -> None:
    """Register a school"""
    gs = get_gear_share(db)

    with reporting_errors():
        school = gs.register_school(
            name=name,
            location=_location(district, province, latitude, longitude),
            principal_name=principal,
        )

    typer.echo(f"✓ Registered school: {school['school_id']}")
    typer.echo(f"  Name: {school['name']}")
    typer.echo(f"  District: {school['location']['district']}")


@school_app.command("list")
def school_list(db: DbOption = None) -> None:
    """List registered schools"""
    gs = get_gear_share(db)
    schools = gs.list_schools()

    if not schools:
        typer.echo("No schools registered")
        return

    typer.echo(f"Schools ({len(schools)}):")
    for school in schools:
        typer.echo(f"  {school['school_id']}: {school['name']} ({school['location']['district']})")


@governing_body_app.command("register")
def governing_body_register(
    name: Annotated[str, typer.Option("--name", help="Governing body name")],
    sports: Annotated[str, typer.Option("--sports", help="Specialised sports (comma-separated)")],
    abbreviation: Annotated[
        Optional[str], typer.Option("--abbreviation", help="Short name")
    ] = None,
    district: Annotated[Optional[str], typer.Option("--district", help="District")] = None,
    province: Annotated[Optional[str], typer.Option("--province", help="Province")] = None,
    db: DbOption = None,
) -> None:
    """Register a sports governing body"""
    gs = get_gear_share(db)

    with reporting_errors():
        body = gs.register_governing_body(
            name=name,
            specialized_sport_ids=[s.strip() for s in sports.split(",") if s.strip()],
            abbreviation=abbreviation,
            location=_location(district, province, None, None),
        )

    typer.echo(f"✓ Registered governing body: {body['governing_body_id']}")
    typer.echo(f"  Name: {body['name']}")
    typer.echo(f"  Sports: {', '.join(body['specialized_sport_ids'])}")


# Equipment and stock commands


@equipment_app.command("register")
def equipment_register(
    name: Annotated[str, typer.Option("--name", help="Equipment name")],
    sport: Annotated[str, typer.Option("--sport", help="Sport id")],
    description: Annotated[
        Optional[str], typer.Option("--description", help="Description")
    ] = None,
    db: DbOption = None,
) -> None:
    """Add an item to the equipment catalog"""
    gs = get_gear_share(db)

    with reporting_errors():
        equipment = gs.register_equipment(name=name, sport_id=sport, description=description)

    typer.echo(f"✓ Registered equipment: {equipment['reference']}")
    typer.echo(f"  Id: {equipment['equipment_id']}")
    typer.echo(f"  Name: {equipment['name']} ({equipment['sport_id']})")


@equipment_app.command("list")
def equipment_list(
    sport: Annotated[Optional[str], typer.Option("--sport", help="Filter by sport")] = None,
    db: DbOption = None,
) -> None:
    """List the equipment catalog"""
    gs = get_gear_share(db)
    catalog = gs.list_equipment([sport] if sport else None)

    if not catalog:
        typer.echo("No equipment registered")
        return

    typer.echo(f"Equipment ({len(catalog)}):")
    for entry in catalog:
        typer.echo(f"  {entry['reference']}: {entry['name']} [{entry['sport_id']}]")


@stock_app.command("add")
def stock_add(
    provider_type: Annotated[
        str, typer.Option("--provider-type", help="school or governing_body")
    ],
    provider_id: Annotated[str, typer.Option("--provider-id", help="Provider ID")],
    equipment: Annotated[str, typer.Option("--equipment", help="Equipment id or EQP reference")],
    quantity: Annotated[int, typer.Option("--quantity", help="Units to add")],
    db: DbOption = None,
) -> None:
    """Add units to a provider's stock"""
    gs = get_gear_share(db)

    with reporting_errors():
        provider = gs.provider_ref(provider_type, provider_id)
        level = gs.stock(provider, equipment, quantity)

    typer.echo(f"✓ Stocked {quantity} x {equipment}")
    typer.echo(f"  Total: {level['total_quantity']}")
    typer.echo(f"  Available: {level['available_quantity']}")


@stock_app.command("show")
def stock_show(
    provider_type: Annotated[
        str, typer.Option("--provider-type", help="school or governing_body")
    ],
    provider_id: Annotated[str, typer.Option("--provider-id", help="Provider ID")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show a provider's stock levels"""
    gs = get_gear_share(db)

    with reporting_errors():
        levels = gs.list_stock(gs.provider_ref(provider_type, provider_id))

    if json_output:
        _echo_json(levels)
        return
    if not levels:
        typer.echo("No stock recorded")
        return
    for level in levels:
        equipment = gs.get_equipment(level["equipment_id"])
        typer.echo(
            f"  {equipment['reference']} {equipment['name']}: "
            f"{level['available_quantity']}/{level['total_quantity']} available"
        )


# Request commands


@request_app.command("create")
def request_create(
    school: Annotated[str, typer.Option("--school", help="Requesting school ID")],
    event_name: Annotated[str, typer.Option("--event-name", help="Event the equipment is for")],
    items: Annotated[
        str,
        typer.Option(
            "--items",
            help='Items (JSON array), e.g. [{"equipment_id": "EQP000001", "quantity_requested": 5}]',
        ),
    ],
    start: Annotated[Optional[datetime], typer.Option("--start", help="Event start date")] = None,
    end: Annotated[Optional[datetime], typer.Option("--end", help="Event end date")] = None,
    description: Annotated[str, typer.Option("--description", help="Description")] = "",
    db: DbOption = None,
) -> None:
    """Open an equipment request"""
    gs = get_gear_share(db)

    with reporting_errors():
        request = gs.create_request(
            school,
            {"event_name": event_name, "start_date": start, "end_date": end, "description": description},
            _json_option(items, "--items"),
        )

    typer.echo(f"✓ Created request: {request['reference']}")
    typer.echo(f"  Id: {request['request_id']}")
    typer.echo(f"  Items: {len(request['items'])}")
    typer.echo(f"  Status: {request['status']}")


@request_app.command("list")
def request_list(
    provider_type: Annotated[
        Optional[str], typer.Option("--provider-type", help="List as this provider kind")
    ] = None,
    provider_id: Annotated[Optional[str], typer.Option("--provider-id", help="Provider ID")] = None,
    school: Annotated[
        Optional[str], typer.Option("--school", help="List a school's own requests")
    ] = None,
    status_filter: Annotated[
        Optional[str], typer.Option("--status", help="Filter by status (comma-separated)")
    ] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List requests a provider can answer, or a school's own requests"""
    gs = get_gear_share(db)
    statuses = [s.strip() for s in status_filter.split(",")] if status_filter else None

    with reporting_errors():
        if school:
            requests = gs.list_requests_for_school(school, statuses)
        elif provider_type and provider_id:
            requests = gs.list_requests_for_provider(
                gs.provider_ref(provider_type, provider_id), statuses=statuses
            )
        else:
            typer.echo("Error: give --school or --provider-type with --provider-id", err=True)
            raise typer.Exit(1)

    if json_output:
        _echo_json(requests)
        return
    if not requests:
        typer.echo("No requests")
        return

    typer.echo(f"Requests ({len(requests)}):")
    for request in requests:
        distance = request.get("distance_km")
        suffix = f" {distance} km" if distance is not None else ""
        typer.echo(
            f"  {request['reference']}: {request['event_name']} [{request['status']}]{suffix}"
        )


@request_app.command("show")
def request_show(
    request_id: Annotated[str, typer.Option("--id", help="Request id or REQ reference")],
    db: DbOption = None,
) -> None:
    """Show a request as JSON"""
    gs = get_gear_share(db)
    with reporting_errors():
        _echo_json(gs.get_request(request_id))


@request_app.command("respond")
def request_respond(
    request_id: Annotated[str, typer.Option("--id", help="Request id or REQ reference")],
    decision: Annotated[str, typer.Option("--decision", help="approved, partial or rejected")],
    actor_type: Annotated[str, typer.Option("--actor-type", help="school, governing_body or admin")],
    actor_id: Annotated[str, typer.Option("--actor-id", help="Actor ID")],
    items: Annotated[
        Optional[str],
        typer.Option("--items", help="Approved items (JSON array of equipment_id/quantity_approved)"),
    ] = None,
    reason: Annotated[Optional[str], typer.Option("--reason", help="Rejection reason")] = None,
    transaction_type: Annotated[
        str, typer.Option("--type", help="Transaction type (rental or permanent)")
    ] = "permanent",
    start: Annotated[Optional[datetime], typer.Option("--start", help="Rental start")] = None,
    due: Annotated[Optional[datetime], typer.Option("--due", help="Rental return due date")] = None,
    fee: Annotated[Optional[str], typer.Option("--fee", help="Rental fee")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes")] = None,
    db: DbOption = None,
) -> None:
    """Approve, partially approve or reject a pending request"""
    gs = get_gear_share(db)
    with reporting_errors():
        actor = _actor(actor_type, actor_id)
        request = gs.respond(
            request_id,
            decision,
            _json_option(items, "--items") if items else None,
            reason,
            actor=actor,
            terms={
                "transaction_type": transaction_type,
                "start_date": start,
                "return_due_date": due,
                "fee": _decimal_option(fee, "--fee") if fee else None,
            },
            notes=notes,
        )

    typer.echo(f"✓ Request {request['reference']}: {request['status']}")
    for transaction_id in request["transaction_ids"]:
        transaction = gs.get_transaction(transaction_id)
        typer.echo(f"  Transaction: {transaction['reference']} ({transaction['transaction_type']})")
    if request.get("rejection_reason"):
        typer.echo(f"  Reason: {request['rejection_reason']}")


@request_app.command("deliver")
def request_deliver(
    request_id: Annotated[str, typer.Option("--id", help="Request id or REQ reference")],
    actor_type: Annotated[str, typer.Option("--actor-type", help="school, governing_body or admin")],
    actor_id: Annotated[str, typer.Option("--actor-id", help="Actor ID")],
    db: DbOption = None,
) -> None:
    """Mark an approved request as delivered"""
    gs = get_gear_share(db)

    with reporting_errors():
        request = gs.mark_delivered(request_id, _actor(actor_type, actor_id))

    typer.echo(f"✓ Request {request['reference']} delivered at {request['delivered_at']}")


# Transaction commands


@transaction_app.command("show")
def transaction_show(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction id or reference")],
    db: DbOption = None,
) -> None:
    """Show a transaction as JSON"""
    gs = get_gear_share(db)
    with reporting_errors():
        _echo_json(gs.get_transaction(transaction_id))


@transaction_app.command("return")
def transaction_return(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction id or reference")],
    returned: Annotated[
        Optional[datetime], typer.Option("--returned", help="Return date (default now)")
    ] = None,
    db: DbOption = None,
) -> None:
    """Confirm a rental came back"""
    gs = get_gear_share(db)

    with reporting_errors():
        transaction = gs.confirm_return(transaction_id, returned)

    typer.echo(f"✓ Returned: {transaction['reference']}")
    typer.echo(f"  Returned date: {transaction['rental_details']['returned_date']}")


@transaction_app.command("cancel")
def transaction_cancel(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction id or reference")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Reason")] = None,
    db: DbOption = None,
) -> None:
    """Cancel a transaction and release its stock"""
    gs = get_gear_share(db)

    with reporting_errors():
        transaction = gs.cancel_transaction(transaction_id, reason)

    typer.echo(f"✓ Cancelled: {transaction['reference']}")


@transaction_app.command("complete")
def transaction_complete(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction id or reference")],
    db: DbOption = None,
) -> None:
    """Mark a permanent transfer as handed over"""
    gs = get_gear_share(db)

    with reporting_errors():
        transaction = gs.complete_transaction(transaction_id)

    typer.echo(f"✓ Completed: {transaction['reference']}")


@transaction_app.command("repair")
def transaction_repair(db: DbOption = None) -> None:
    """Release stock still held by returned or cancelled transactions"""
    gs = get_gear_share(db)

    with reporting_errors():
        repaired = gs.release_stranded_reservations()

    if not repaired:
        typer.echo("No stranded reservations")
        return
    typer.echo(f"✓ Released stock for: {', '.join(repaired)}")


@transaction_app.command("overdue")
def transaction_overdue(db: DbOption = None, json_output: JsonOption = False) -> None:
    """List rentals past their return date"""
    gs = get_gear_share(db)
    overdue = gs.overdue_rentals()

    if json_output:
        _echo_json(overdue)
        return
    if not overdue:
        typer.echo("No overdue rentals")
        return

    typer.echo(f"Overdue rentals ({len(overdue)}):")
    for transaction in overdue:
        typer.echo(
            f"  {transaction['reference']}: due {transaction['rental_details']['return_due_date']}"
            f" (recipient {transaction['recipient_school_id']})"
        )


# Donation commands


@donation_app.command("create")
def donation_create(
    request_id: Annotated[str, typer.Option("--request", help="Request id or REQ reference")],
    donor_type: Annotated[
        str, typer.Option("--donor-type", help="individual, organization, school or governing_body")
    ],
    donor_id: Annotated[str, typer.Option("--donor-id", help="Donor ID")],
    donation_type: Annotated[str, typer.Option("--type", help="MONETARY or EQUIPMENT")],
    items: Annotated[
        Optional[str],
        typer.Option("--items", help="Donated items (JSON array of equipment_id/quantity)"),
    ] = None,
    amount: Annotated[Optional[str], typer.Option("--amount", help="Monetary amount")] = None,
    currency: Annotated[str, typer.Option("--currency", help="Currency code")] = "LKR",
    anonymous: Annotated[bool, typer.Option("--anonymous", help="Hide the donor")] = False,
    db: DbOption = None,
) -> None:
    """Fulfil a pending request with a donation"""
    gs = get_gear_share(db)

    with reporting_errors():
        result = gs.donate(
            request_id,
            {"donor_type": donor_type, "donor_id": donor_id},
            donation_type.upper(),
            items=_json_option(items, "--items") if items else None,
            monetary={"amount": _decimal_option(amount, "--amount"), "currency": currency}
            if amount
            else None,
            anonymous=anonymous,
        )

    typer.echo(f"✓ Donation: {result['donation']['reference']}")
    typer.echo(f"  Request {result['request']['reference']}: {result['request']['status']}")


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
