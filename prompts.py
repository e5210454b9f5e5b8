# prompts.py

SYSTEM_PROMPT = """You are an expert US medical billing analyst. You read itemized hospital and clinic bills carefully and answer ONLY with the JSON structure you are asked for. Never add commentary outside the JSON.
"""

def get_normalization_prompt(bill_text: str) -> str:
    """Creates the prompt that rewrites a bill as one plain-English sentence per billed service."""
    return f"""
<INSTRUCTIONS>
Reword the itemized medical bill below as a list of natural English descriptions, where each sentence corresponds to exactly one item in the itemized charges list.

**Follow these rules exactly:**
1.  Do not include charges, dollar amounts, or anything above or below the itemized charges section.
2.  Focus only on the medical services and items provided.
3.  Write each line item as a natural English sentence describing what the patient received, for example:
    "The patient had Semi-Private Room & Board in the hospital."
    "The patient had an Emergency Room Visit."
    "The patient needed IV Fluids."
4.  Return ONLY a JSON array of strings, with no additional text.
</INSTRUCTIONS>

<ITEMIZED_BILL>
{bill_text}
</ITEMIZED_BILL>
"""

def get_cost_analysis_prompt(code: str, description: str, bill_text: str, reference_table: str) -> str:
    """Creates the prompt that reconciles one medical code against the bill and the cost database."""
    return f"""
<INSTRUCTIONS>
Analyze a specific medical code against an itemized medical bill and a cost database.

MEDICAL CODE: {code}
DESCRIPTION: {description}

**Follow these steps exactly:**
1.  Find the line item for this code in the <ITEMIZED_BILL>. If the code does not appear explicitly, use the closest related line item.
2.  Read the number of units and the dollar amount billed for that line item.
3.  Read the minimum, median and maximum typical cost for this code from the <COST_DATABASE>. If no mapping exists, estimate them from similar codes.
4.  Return ONLY a JSON object with these exact fields, and no additional text:
{{
  "units": <integer number of units billed>,
  "billedAmount": <dollar amount billed>,
  "typicalCost": {{"min": <number>, "median": <number>, "max": <number>}}
}}
</INSTRUCTIONS>

<ITEMIZED_BILL>
{bill_text}
</ITEMIZED_BILL>

<COST_DATABASE>
{reference_table}
</COST_DATABASE>
"""
