from models import Asset, Customer

INITIAL_PASSWORD = "admin123"
INITIAL_SECURITY_QUESTION = ""
INITIAL_SECURITY_ANSWER = ""

INITIAL_ASSETS = [
    Asset(
        id="ASSET-001",
        name="Concrete Mixer 500L",
        product_type="Construction Equipment",
        make="BuildRight",
        model="CM-500",
        serial_number="BR-CM500-1001",
        purchase_date="2022-01-15T00:00:00.000Z",
        rate=50,
        billing_cycle="day",
    ),
    Asset(
        id="ASSET-002",
        name="Scaffolding Set (10ft)",
        product_type="Construction Equipment",
        make="SafeScaffold",
        model="SS-10",
        serial_number="SS-10-2023",
        purchase_date="2022-03-20T00:00:00.000Z",
        rate=150,
        billing_cycle="month",
    ),
    Asset(
        id="ASSET-003",
        name="Canon EOS R5",
        product_type="Cameras",
        make="Canon",
        model="EOS R5",
        serial_number="CAN-R5-1234",
        purchase_date="2023-05-10T00:00:00.000Z",
        rate=75,
        billing_cycle="day",
    ),
]

INITIAL_CUSTOMERS = [
    Customer(
        id="CUST-001",
        name="John Doe Construction",
        email="john.doe@construction.com",
        phone="123-456-7890",
        address="123 Main St, Anytown, USA",
        aadhar="1234 5678 9012",
    ),
    Customer(
        id="CUST-002",
        name="Jane Smith Builders",
        email="jane.smith@builders.com",
        phone="987-654-3210",
        address="456 Oak Ave, Othertown, USA",
        aadhar="9876 5432 1098",
    ),
]

# unique, in first-seen order
INITIAL_PRODUCT_TYPES = list(dict.fromkeys(a.product_type for a in INITIAL_ASSETS))
