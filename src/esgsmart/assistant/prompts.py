from typing import Any, Dict, List, Optional

SYSTEM_PROMPT = """
You are a helpful ESG reporting assistant supporting a Singapore-based sustainability reporting company. Your job is to answer questions clearly, naturally, and accurately, like a well-informed analyst.

You'll be provided with:
- A structured context block based on the uploaded sustainability report
- Optional Singapore regulatory facts (SGX, IFRS S2)
- Background information about ESGsmart's data sources and verification process

If the user asks about ESGsmart's data sources or how the data is verified, explain in your own words; avoid copying or listing them mechanically.

If the user asks about SGX requirements, GRI mandates, or IFRS/ISSB rules, refer to the regulatory context. Distinguish between what is actually reported and what is required.

If the data is not in the provided context, say so honestly. Do not guess.

When providing answers about missing disclosures or internal data sources, use consistent phrasing:
- "Available in financial records"
- "Available in HR records"
- "Available in governance documentation"
- "Disclosed in sustainability report"
- "Not disclosed"

Avoid variations like "should be in...", "may be in...", or "likely found in...".
""".strip()

REGULATORY_FACTS = """
SINGAPORE REGULATORY FACTS

Summary:
- SGX Listing Rules 711A and 711B require every listed issuer to publish an annual sustainability report on a "comply or explain" basis (within 4-5 months after FY end).
- GRI is NOT mandated by SGX. Issuers may report with reference to frameworks like GRI or TCFD voluntarily.
- The SGX Sustainability Reporting Guide provides structure but does not require GRI compliance.
- From FY2025, all SGX-listed issuers must provide climate-related disclosures aligned with IFRS S2 (ISSB), including Scope 1 and 2 GHG emissions (Scope 3 is phased).

Citations:
- SGX Rulebook 711A: https://rulebook.sgx.com/rulebook/711a
- SGX Rulebook 711B: https://rulebook.sgx.com/rulebook/711b
- SGX Sustainability Reporting: https://www.sgx.com/sustainable-finance/sustainability-reporting
""".strip()

DATA_SOURCES_INFO = """
ESGsmart Primary Data Sources & Accuracy

Primary data sources:
1. SBTi target-setting methodology: https://sciencebasedtargets.org
2. SBTi validated companies: https://sciencebasedtargets.org/companies-taking-action
3. Disclosure frameworks: GRI, IFRS Sustainability (ISSB IFRS S2), IFRS Real Estate, CDP, DJSI
4. Internal standards-to-Essentials mapping (proprietary)

Accuracy controls:
- Authoritative sources only (official SBTi, standard-setter sites)
- Automated ETL + human QA, schema checks, unit/number normalization
- Versioned Delta tables with source URIs/IDs
- Entity resolution & normalization rules for companies and codes
""".strip()

DATA_SOURCES_PREAMBLE = (
    "The following information describes the primary ESG data sources and accuracy "
    "controls used by ESGsmart. Use this as factual background when the user asks "
    "about data sources or how the data is verified."
)

MAX_SNIPPET_CHARS = 6000
MAX_TOP_GAPS = 10


def shorten_text(text: str, max_chars: int = MAX_SNIPPET_CHARS) -> str:
    """Keep the first 60% and last 20% of the budget, noting what was cut."""
    if not text or len(text) <= max_chars:
        return text
    head = text[: int(max_chars * 0.6)]
    tail = text[-int(max_chars * 0.2):]
    omitted = len(text) - len(head) - len(tail)
    return f"{head}\n\n... [{omitted} chars omitted] ...\n\n{tail}"


def _field(summary: Dict[str, Any], key: str, default: Any = "N/A") -> Any:
    nested = summary.get("json_schema") if isinstance(summary.get("json_schema"), dict) else {}
    return summary.get(key) or nested.get(key) or default


def build_context_block(
    summary: Optional[Dict[str, Any]],
    benchmark: Optional[Dict[str, Any]],
    gap: Optional[List[Any]],
) -> str:
    """
    Render the document's artifacts into the context block the assistant
    answers from. Inputs are passed through as produced; nothing is derived
    beyond counts.
    """
    s = summary if isinstance(summary, dict) else {}
    b = benchmark if isinstance(benchmark, dict) else {}
    g = gap if isinstance(gap, list) else []

    sbti = b.get("company") if isinstance(b.get("company"), dict) else {}
    peers_country = b.get("peers_country") or []
    peers_region = b.get("peers_region") or []

    top_gaps = []
    for row in g[:MAX_TOP_GAPS]:
        if not isinstance(row, dict):
            continue
        sev = row.get("severity", "?")
        code = row.get("framework_question_code") or row.get("source_question_code") or "Code"
        title = str(row.get("framework_question_name") or "")[:100]
        top_gaps.append(f"  - {sev} | {code} | {title}")

    missing = sum(1 for row in g if isinstance(row, dict) and row.get("severity") == 3)
    snippet = shorten_text(str(s.get("pdf_doc") or s.get("extracted_text") or ""))

    return f"""
DOCUMENT SCOPE
Company: {_field(s, "company_name", "Unknown")}
Year: {_field(s, "reporting_year")}
Sector: {_field(s, "sector", "Real Estate")}
Country/Region: {_field(s, "main_country")}/{_field(s, "main_region")}

KEY NUMBERS
Scope 1: {_field(s, "scope_1_emissions")}
Scope 2: {_field(s, "scope_2_emissions")}
Scope 3: {_field(s, "scope_3_emissions")}

SBTi SNAPSHOT
Target year: {sbti.get("sbti_target_year") or "N/A"}
S1+S2 base: {sbti.get("sbti_scope_1_2") or "N/A"}
S1+S2 target: {sbti.get("sbti_scope_1_2_target") or "N/A"}
Reduction: {sbti.get("sbti_scope_1_2_reduction_pct") or "N/A"}

PEERS SNAPSHOT
Country peers: {len(peers_country)} companies
Regional peers: {len(peers_region)} companies

TOP GAPS (SEVERITY DESC, MAX {MAX_TOP_GAPS})
{chr(10).join(top_gaps) or "No gaps data available"}

MISSING DISCLOSURES
Total gaps: {len(g)}
Severity 3 (Missing): {missing}

EXTRACTED REPORT TEXT SNIPPET
{snippet}

ANSWERING INSTRUCTIONS
- You are an ESG reporting assistant for a Singapore real estate corporation.
- Answer using the above context.
- When the user asks about missing disclosures or internal data, refer to the gaps list above.
- If information is not in the context, say so honestly.
""".strip()
