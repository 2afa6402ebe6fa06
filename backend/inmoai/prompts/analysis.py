"""
Spanish prompts for the investment analysis agents.
All AI-facing text is in Spanish (Spain); the reports are read by investors
looking at properties in Madrid.
"""

from inmoai.models.property import PropertyInput

ANALYSIS_SYSTEM_PROMPT = """\
Actúa como un Analista de Inversiones Inmobiliarias de Clase Mundial.
Tu objetivo es evaluar inmuebles para inversores basándote en los datos proporcionados.

Requisitos de salida:
1. Idioma: Estrictamente ESPAÑOL.
2. Formato de texto: HTML limpio y profesional.
   - Estructura el contenido con bloques claros.
   - Usa <h3> para títulos de sección.
   - Usa <ul> y <li> para listas.
   - Usa <strong> para resaltar lo importante.
   - NO uses markdown, no uses etiquetas como <html>, <body> o <head>.
3. Datos estructurados: JSON estricto para las métricas y gráficas.
4. Tono: Directo y simple. Evita jerga financiera compleja sin explicarla.

Sé conservador en tus estimaciones financieras.
Dirígete al usuario por su nombre."""


ANALYSIS_PROMPT = """\
Prepara un análisis de inversión inmobiliaria para: {first_name} {last_name}.
CONTEXTO TEMPORAL: Asume que la fecha de consulta actual es {reference_month} de {reference_year}.

Detalles del Inmueble:
Tipo: {property_type}
Ubicación: {location}
Precio: {currency} {price}
Tamaño: {size_m2} m2
Habitaciones: {bedrooms}
Baños: {bathrooms}
Garaje: {garage} plazas
Antigüedad: {age_years} años
Estado: {condition}
Descripción: {description}

Genera lo siguiente en el JSON:
1. Métricas Financieras (ROI, Cap Rate, Cashflow Mensual, etc.).
2. Datos de Mercado Ficticios (pero realistas) para gráficas.
   - Para "priceEvolution", genera datos estrictamente para los últimos 5 años finalizando en {reference_year} (es decir: {years}).
   - Para "similarListings", indica la cantidad de viviendas similares en oferta por categoría (ej: Misma Zona, Precio Similar, Tamaño Similar).
3. Score de viabilidad (0 a 100) y Recomendación (BUY, HOLD o PASS).
4. "htmlContent": Un informe HTML optimizado para lectura rápida.
   - INICIO: Crea un <div> con un "Resumen Ejecutivo" de 3-4 líneas.
   - CUERPO: Secciones claras como "Análisis de Rentabilidad", "Puntos Fuertes" y "Riesgos".
   - FINAL: Conclusión clara sobre si comprar o no.
   - Menciona explícitamente si el garaje añade valor significativo.
   - En el informe escrito, haz referencia a que el análisis es válido a fecha de {reference_month} {reference_year}."""

DEFAULT_DESCRIPTION = "Inmueble residencial estándar en buen estado."


def _number(value: float) -> str:
    """Render 250000.0 as '250000' and 80.5 as '80.5'."""
    return str(int(value)) if float(value).is_integer() else str(value)


def price_evolution_years(reference_year: int, count: int = 5) -> list[str]:
    """Consecutive year labels ending at the reference year, oldest first."""
    return [str(year) for year in range(reference_year - count + 1, reference_year + 1)]


def build_analysis_prompt(
    property_input: PropertyInput,
    reference_month: str,
    reference_year: int,
) -> str:
    """Build the user prompt for the fallback analysis call."""
    return ANALYSIS_PROMPT.format(
        first_name=property_input.user_info.first_name,
        last_name=property_input.user_info.last_name,
        reference_month=reference_month,
        reference_year=reference_year,
        years=", ".join(price_evolution_years(reference_year)),
        property_type=property_input.property_type.value,
        location=property_input.location,
        currency=property_input.currency,
        price=_number(property_input.price),
        size_m2=_number(property_input.size_m2),
        bedrooms=property_input.bedrooms,
        bathrooms=property_input.bathrooms,
        garage=property_input.garage,
        age_years=property_input.age_years,
        condition=property_input.condition,
        description=property_input.description or DEFAULT_DESCRIPTION,
    )


def _data_point_schema(label_description: str, value_description: str) -> dict:
    return {
        "type": "object",
        "properties": {
            "label": {"type": "string", "description": label_description},
            "value": {"type": "number", "description": value_description},
        },
        "required": ["label", "value"],
        "additionalProperties": False,
    }


# Strict structured-output schema for the fallback call. Every property is
# required and no extra keys are allowed, as OpenAI strict mode demands.
ANALYSIS_RESPONSE_SCHEMA: dict = {
    "name": "investment_analysis",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "metrics": {
                "type": "object",
                "properties": {
                    "roi": {"type": "number", "description": "ROI anual estimado (%)"},
                    "capRate": {"type": "number", "description": "Tasa de capitalización (%)"},
                    "monthlyCashflow": {"type": "number", "description": "Beneficio neto mensual estimado"},
                    "estimatedRenovationCost": {"type": "number", "description": "Costo estimado de reformas"},
                    "suggestedOfferPrice": {"type": "number", "description": "Precio de oferta recomendado"},
                    "appreciationForecast": {"type": "number", "description": "Apreciación anual esperada (%)"},
                },
                "required": [
                    "roi",
                    "capRate",
                    "monthlyCashflow",
                    "estimatedRenovationCost",
                    "suggestedOfferPrice",
                    "appreciationForecast",
                ],
                "additionalProperties": False,
            },
            "marketData": {
                "type": "object",
                "properties": {
                    "priceEvolution": {
                        "type": "array",
                        "description": "Evolución del precio m2 en los últimos 5 años",
                        "items": _data_point_schema("Año (ej: 2025)", "Precio promedio m2"),
                    },
                    "similarListings": {
                        "type": "array",
                        "description": "Cantidad de viviendas similares en oferta actual",
                        "items": _data_point_schema("Categoría (ej: Misma Zona)", "Cantidad"),
                    },
                },
                "required": ["priceEvolution", "similarListings"],
                "additionalProperties": False,
            },
            "viabilityScore": {"type": "number", "description": "Puntuación 0 a 100"},
            "recommendation": {"type": "string", "enum": ["BUY", "HOLD", "PASS"]},
            "htmlContent": {"type": "string", "description": "Informe completo en formato HTML simple"},
        },
        "required": ["metrics", "marketData", "viabilityScore", "recommendation", "htmlContent"],
        "additionalProperties": False,
    },
}


CHAT_ASSISTANT_SYSTEM_PROMPT = """\
Eres un asistente inmobiliario útil. Estás discutiendo una propiedad específica basada en un \
informe generado previamente. Asume que la fecha actual es {reference_month} de {reference_year}. \
Mantén las respuestas concisas, profesionales y en ESPAÑOL.

Inmueble: {title} ({location}), {currency} {price}, {size_m2} m2.
Recomendación: {recommendation}. Score de viabilidad: {viability_score}/100. ROI: {roi}%.

Informe:
{html_content}"""
