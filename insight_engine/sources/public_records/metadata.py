"""
Public records metadata utilities.

Handles:
- Assessor record translation
- Deed history with sale-type categorization
- Tax history and building permits
- Comparable sales with a simple adjusted-price model
- Neighborhood statistics
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from insight_engine.core.api_registry import ServiceName
from insight_engine.core.schemas import Comparable, PermitRecord, SaleRecord, SubjectProperty

logger = logging.getLogger(__name__)


# Adjusted price model
SQFT_ADJUSTMENT = 50  # $ per sqft of difference
AGE_ADJUSTMENT = 2000  # $ per year of construction difference
BEDROOM_ADJUSTMENT = 10000
BATHROOM_ADJUSTMENT = 5000
MONTHLY_APPRECIATION = 0.005
DAYS_PER_MONTH = 30

NON_ARMS_LENGTH_THRESHOLD = 1000


def lookup_params(address: str, parcel_number: Optional[str] = None) -> Dict[str, str]:
    """Records are looked up by parcel number when known, else by address."""
    if parcel_number:
        return {"parcel": parcel_number}
    return {"address": address}


def transform_assessment(raw: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Translate an assessor record.

    Returns:
        Dict with "facts" (building characteristics) and "extras"
        (owner, assessment, lot, features)
    """
    facts = {
        "address": raw.get("propertyAddress"),
        "bedrooms": raw.get("bedrooms"),
        "bathrooms": raw.get("bathrooms"),
        "sqft": raw.get("buildingArea"),
        "lot_size": raw.get("lotSize"),
        "year_built": raw.get("yearBuilt"),
    }

    extras = {
        "parcel_number": raw.get("parcelNumber"),
        "owner": {
            "name": raw.get("ownerName"),
            "mailing_address": raw.get("ownerMailingAddress"),
            "occupancy": "Owner" if raw.get("ownerOccupied") else "Non-Owner",
        },
        "legal_description": raw.get("legalDescription"),
        "land_use": raw.get("landUseCode"),
        "zoning": raw.get("zoning"),
        "neighborhood_code": raw.get("neighborhoodCode"),
        "assessment": {
            "year": raw.get("assessmentYear"),
            "total_value": raw.get("totalAssessedValue"),
            "land_value": raw.get("landAssessedValue"),
            "improvement_value": raw.get("improvementAssessedValue"),
            "exemptions": raw.get("exemptions") or [],
            "taxable_value": raw.get("taxableValue"),
        },
        "building": {
            "effective_year": raw.get("effectiveYearBuilt"),
            "rooms": raw.get("totalRooms"),
            "stories": raw.get("stories"),
            "construction": raw.get("constructionType"),
            "condition": raw.get("condition"),
            "quality": raw.get("qualityGrade"),
        },
        "lot": {
            "size_unit": raw.get("lotSizeUnit"),
            "frontage": raw.get("frontage"),
            "depth": raw.get("depth"),
            "shape": raw.get("lotShape"),
            "topography": raw.get("topography"),
        },
        "features": {
            "heating": raw.get("heatingType"),
            "cooling": raw.get("coolingType"),
            "fireplace": raw.get("fireplaces"),
            "pool": raw.get("pool"),
            "garage": raw.get("garageType"),
            "garage_spaces": raw.get("garageSpaces"),
            "basement": raw.get("basementType"),
            "basement_finished": raw.get("basementFinishedArea"),
        },
        "last_updated": raw.get("lastUpdated"),
    }

    return {"facts": facts, "extras": extras}


def categorize_sale_type(deed: Dict[str, Any]) -> str:
    """
    Categorize a deed transfer.

    Order matters: foreclosure and quit-claim documents are recognized
    before the nominal-price check.
    """
    document_type = (deed.get("documentType") or "").lower()
    sale_price = deed.get("salePrice")

    if "foreclosure" in document_type:
        return "Foreclosure"
    if "quit" in document_type:
        return "Quit Claim"
    if sale_price is not None and sale_price < NON_ARMS_LENGTH_THRESHOLD:
        return "Non-Arms Length"
    if "warranty" in document_type:
        return "Warranty Deed"
    return "Standard Sale"


def transform_deeds(response: Dict[str, Any]) -> List[SaleRecord]:
    """Translate a deeds response into sale records, newest first as returned."""
    building_area = response.get("buildingArea")
    sales = []
    for deed in response["deeds"]:
        sale_price = deed.get("salePrice")
        sales.append(
            SaleRecord(
                recording_date=deed.get("recordingDate"),
                sale_date=deed.get("saleDate"),
                document_type=deed.get("documentType"),
                grantor=deed.get("grantor"),
                grantee=deed.get("grantee"),
                sale_price=sale_price,
                sale_type=categorize_sale_type(deed),
                price_per_sqft=(
                    round(sale_price / building_area)
                    if sale_price and building_area
                    else None
                ),
            )
        )
    return sales


def transform_tax_history(response: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "current_year": response.get("currentTaxYear"),
        "tax_bill": {
            "total": response.get("totalTaxAmount"),
            "breakdown": {
                "county": response.get("countyTax"),
                "city": response.get("cityTax"),
                "school": response.get("schoolTax"),
                "special": response.get("specialAssessments"),
            },
            "exemptions": response.get("exemptions"),
            "net_tax": response.get("netTaxAmount"),
        },
        "payment_status": {
            "is_paid": response.get("isPaid"),
            "paid_date": response.get("paidDate"),
            "delinquent": response.get("isDelinquent"),
            "delinquent_amount": response.get("delinquentAmount"),
        },
        "history": [
            {
                "year": year.get("taxYear"),
                "assessed_value": year.get("assessedValue"),
                "tax_amount": year.get("taxAmount"),
                "tax_rate": year.get("taxRate"),
                "paid": year.get("isPaid"),
                "paid_date": year.get("paidDate"),
            }
            for year in response.get("taxHistory") or []
        ],
        "tax_rate": response.get("currentTaxRate"),
        "millage": response.get("millageBreakdown"),
    }


def transform_permits(response: Dict[str, Any]) -> List[PermitRecord]:
    return [
        PermitRecord(
            permit_number=permit.get("permitNumber"),
            type=permit.get("permitType"),
            description=permit.get("description"),
            issued_date=permit.get("issuedDate"),
            status=permit.get("status"),
            estimated_cost=permit.get("estimatedCost"),
        )
        for permit in response["permits"]
    ]


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value)[:10]).date()
    except ValueError:
        logger.debug(f"Unparseable sale date: {value}")
        return None


def calculate_adjusted_price(
    comp: Dict[str, Any],
    subject: SubjectProperty,
    today: Optional[date] = None,
) -> Optional[int]:
    """
    Adjust a comparable's sale price toward the subject property.

    Size, age, bedroom and bathroom differences add or subtract fixed
    amounts; the result is then appreciated 0.5% per whole month since the
    sale. Adjustments whose inputs are missing on either side are skipped.
    """
    sale_price = comp.get("salePrice")
    if sale_price is None:
        return None

    adjusted = float(sale_price)

    if subject.sqft is not None and comp.get("sqft") is not None:
        adjusted += (subject.sqft - comp["sqft"]) * SQFT_ADJUSTMENT
    if subject.year_built is not None and comp.get("yearBuilt") is not None:
        adjusted += (comp["yearBuilt"] - subject.year_built) * AGE_ADJUSTMENT
    if subject.bedrooms is not None and comp.get("bedrooms") is not None:
        adjusted += (subject.bedrooms - comp["bedrooms"]) * BEDROOM_ADJUSTMENT
    if subject.bathrooms is not None and comp.get("bathrooms") is not None:
        adjusted += (subject.bathrooms - comp["bathrooms"]) * BATHROOM_ADJUSTMENT

    sale_date = _parse_date(comp.get("saleDate"))
    if sale_date is not None:
        today = today or date.today()
        months = max((today - sale_date).days // DAYS_PER_MONTH, 0)
        adjusted *= 1 + MONTHLY_APPRECIATION * months

    return round(adjusted)


def transform_comparables(
    response: Dict[str, Any],
    subject: SubjectProperty,
    confidence: int,
    today: Optional[date] = None,
) -> List[Comparable]:
    comparables = []
    for comp in response["comparables"]:
        if not comp.get("address"):
            continue
        comparables.append(
            Comparable(
                address=comp["address"],
                zip=comp.get("zip"),
                source=ServiceName.PUBLIC_RECORDS,
                confidence=confidence,
                price=comp.get("salePrice"),
                sale_date=comp.get("saleDate"),
                distance=comp.get("distance"),
                bedrooms=comp.get("bedrooms"),
                bathrooms=comp.get("bathrooms"),
                sqft=comp.get("sqft"),
                year_built=comp.get("yearBuilt"),
                adjusted_price=calculate_adjusted_price(comp, subject, today),
            )
        )
    return comparables


def transform_neighborhood_stats(response: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    facts = {
        "property_count": response.get("totalProperties"),
        "owner_occupied_rate": response.get("ownerOccupiedPercentage"),
        "average_tax_bill": response.get("averageTaxAmount"),
        "average_assessed_value": response.get("averageAssessedValue"),
        "median_assessed_value": response.get("medianAssessedValue"),
    }
    extras = {
        "average_year_built": response.get("averageYearBuilt"),
        "property_types": response.get("propertyTypeBreakdown"),
        "value_distribution": response.get("valueRanges"),
        "recent_sales": {
            "count": response.get("salesCount"),
            "average_price": response.get("averageSalePrice"),
            "average_days_on_market": response.get("averageDaysOnMarket"),
        },
    }
    return {"facts": facts, "extras": extras}
