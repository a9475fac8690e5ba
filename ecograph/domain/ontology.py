ENTITY_ROLES = [
    "Core",          # seed company / centre of an ego network
    "Supplier",
    "Customer",
    "Competitor",
    "Partner",
    "Subsidiary",
    "Other",
]

DEFAULT_ROLE = "Other"

RELATIONSHIP_TYPES = [
    "SupplyChain",   # supplier → buyer
    "Equity",        # investor → investee
    "Competitor",
    "Partner",
    "Acquisition",   # acquirer → target
    "Customer",      # vendor → customer
]

# Target share of each role in a well-rounded ecosystem graph.
# Subsidiary is counted under Other.
ROLE_TARGET_DISTRIBUTION = {
    "Core": 0.20,
    "Supplier": 0.20,
    "Customer": 0.20,
    "Partner": 0.20,
    "Competitor": 0.15,
    "Other": 0.05,
}

# Whole-word suffixes removed when canonicalising a company name.
LEGAL_SUFFIXES = ["inc", "corp", "co", "ltd", "llc", "plc", "company", "corporation"]

# Collective / non-entity terms.  A name equal to or containing one of these
# describes a category, not a concrete company.
GENERIC_NAME_TERMS = [
    "suppliers",
    "supplier",
    "customers",
    "vendors",
    "manufacturers",
    "server manufacturers",
    "contract manufacturers",
    "cloud providers",
    "hyperscalers",
    "oems",
    "oem",
    "odms",
    "distributors",
    "resellers",
    "competitors",
    "startups",
    "government agencies",
    "chipmakers",
    "data center operators",
]
