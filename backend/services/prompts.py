"""
Manual J chain prompts

The wording of each template is part of the contract with the model:
downstream stages and the visualization parser rely on the shape of what
these prompts ask for. Change them deliberately.
"""

STATIC_DATA_INSTRUCTION = """Analyze this building plans PDF and extract key building characteristics
in a structured format. Include details about square footage, number of rooms,
window specifications, insulation values, and construction materials."""

DYNAMIC_ASSUMPTIONS_TEMPLATE = """Given the location "{location}" and the following building data:
{static_data}

Generate reasonable assumptions for Manual J calculations including:
1. Local climate data and design temperatures
2. Insulation effectiveness
3. Duct system losses
4. Infiltration rates

Return the assumptions in JSON format."""

MANUAL_J_RESULTS_TEMPLATE = """Using the following building data and assumptions,
perform Manual J load calculations:

Building Data:
{static_data}

Assumptions:
{assumptions}

Calculate and return:
1. Heating load (BTU/h)
2. Cooling load (BTU/h)
3. Room-by-room load breakdown
4. Peak load conditions"""

VISUALIZATION_TEMPLATE = """Convert these Manual J results into visualization data:
{results}

Generate:
1. A chart specification (as a base64 encoded PNG string)
2. CSV data for detailed analysis

Return both in JSON format."""

CHAT_CONTEXT_TEMPLATE = "Project Static Data: {static_data}\nCurrent Assumptions: {assumptions}"


def static_data_instruction() -> str:
    return STATIC_DATA_INSTRUCTION


def dynamic_assumptions_prompt(location: str, static_data: str) -> str:
    return DYNAMIC_ASSUMPTIONS_TEMPLATE.format(location=location, static_data=static_data)


def manual_j_results_prompt(static_data: str, assumptions: str) -> str:
    return MANUAL_J_RESULTS_TEMPLATE.format(static_data=static_data, assumptions=assumptions)


def visualization_prompt(results: str) -> str:
    return VISUALIZATION_TEMPLATE.format(results=results)


def chat_context_message(static_data: str, assumptions: str) -> str:
    return CHAT_CONTEXT_TEMPLATE.format(static_data=static_data, assumptions=assumptions)
