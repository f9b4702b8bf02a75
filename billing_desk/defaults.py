"""Canonical pricing lists used to seed an empty catalog. Matched on code."""

from decimal import Decimal

from billing_desk.cura.entities import Catalog, DoctorFee, ImagingService, LabTest, PricingEntry

# (code, name, category, price)
LAB_TESTS = [
    ("CBC001", "Complete Blood Count (CBC)", "Hematology", "25.00"),
    ("ESR001", "Erythrocyte Sedimentation Rate (ESR)", "Hematology", "12.00"),
    ("CRP001", "C-Reactive Protein (CRP)", "Immunology", "18.00"),
    ("BMP001", "Basic Metabolic Panel (BMP)", "Chemistry", "30.00"),
    ("CMP001", "Comprehensive Metabolic Panel (CMP)", "Chemistry", "40.00"),
    ("LIP001", "Lipid Panel", "Chemistry", "35.00"),
    ("LFT001", "Liver Function Tests (LFT)", "Chemistry", "32.00"),
    ("RFT001", "Renal Function Tests (RFT)", "Chemistry", "32.00"),
    ("UE001", "Urea and Electrolytes (U&E)", "Chemistry", "22.00"),
    ("GLU001", "Fasting Blood Glucose", "Chemistry", "10.00"),
    ("HBA001", "Hemoglobin A1c (HbA1c)", "Chemistry", "28.00"),
    ("TSH001", "Thyroid Stimulating Hormone (TSH)", "Endocrinology", "26.00"),
    ("TFT001", "Thyroid Function Tests (T3/T4/TSH)", "Endocrinology", "45.00"),
    ("VTD001", "Vitamin D (25-OH)", "Chemistry", "38.00"),
    ("B12001", "Vitamin B12", "Chemistry", "30.00"),
    ("FOL001", "Folate", "Chemistry", "24.00"),
    ("FER001", "Ferritin", "Hematology", "22.00"),
    ("IRN001", "Iron Studies", "Hematology", "34.00"),
    ("COA001", "Coagulation Screen (PT/INR/APTT)", "Hematology", "36.00"),
    ("DDM001", "D-Dimer", "Hematology", "40.00"),
    ("TRP001", "Troponin", "Cardiology", "45.00"),
    ("BNP001", "NT-proBNP", "Cardiology", "55.00"),
    ("UA001", "Urinalysis", "Urinalysis", "15.00"),
    ("UCS001", "Urine Culture and Sensitivity", "Microbiology", "35.00"),
    ("BCS001", "Blood Culture", "Microbiology", "60.00"),
    ("STC001", "Stool Culture", "Microbiology", "40.00"),
    ("PSA001", "Prostate Specific Antigen (PSA)", "Oncology", "32.00"),
    ("HCG001", "Beta hCG (Pregnancy Test)", "Endocrinology", "20.00"),
    ("HIV001", "HIV 1/2 Antibody Screen", "Serology", "30.00"),
    ("HEP001", "Hepatitis B Surface Antigen", "Serology", "28.00"),
    ("HCV001", "Hepatitis C Antibody", "Serology", "28.00"),
    ("RF001", "Rheumatoid Factor", "Immunology", "24.00"),
    ("ANA001", "Antinuclear Antibody (ANA)", "Immunology", "42.00"),
    ("ALG001", "Allergy Panel (IgE)", "Immunology", "75.00"),
    ("COV001", "COVID-19 PCR", "Microbiology", "50.00"),
]

# (code, name, modality, body part, price)
IMAGING = [
    ("XR001", "Chest X-Ray", "X-Ray", "Chest", "45.00"),
    ("XR002", "Abdominal X-Ray", "X-Ray", "Abdomen", "45.00"),
    ("XR003", "Spine X-Ray", "X-Ray", "Spine", "55.00"),
    ("XR004", "Extremity X-Ray", "X-Ray", "Extremities", "40.00"),
    ("CT001", "CT Head", "CT", "Head", "250.00"),
    ("CT002", "CT Chest", "CT", "Chest", "300.00"),
    ("CT003", "CT Abdomen and Pelvis", "CT", "Abdomen", "350.00"),
    ("MRI001", "MRI Brain", "MRI", "Head", "450.00"),
    ("MRI002", "MRI Spine", "MRI", "Spine", "480.00"),
    ("MRI003", "MRI Knee", "MRI", "Extremities", "400.00"),
    ("US001", "Abdominal Ultrasound", "Ultrasound", "Abdomen", "120.00"),
    ("US002", "Pelvic Ultrasound", "Ultrasound", "Pelvis", "120.00"),
    ("US003", "Obstetric Ultrasound", "Ultrasound", "Pelvis", "140.00"),
    ("ECHO001", "Echocardiogram", "Ultrasound", "Heart", "220.00"),
    ("MAM001", "Mammogram", "Mammography", "Breast", "150.00"),
    ("DEXA001", "DEXA Bone Density Scan", "DEXA", "Whole Body", "110.00"),
]

# (code, service, category, price)
DOCTOR_FEES = [
    ("GC001", "General Consultation", "Consultation", "50.00"),
    ("FU001", "Follow-up Consultation", "Consultation", "35.00"),
    ("SC001", "Specialist Consultation", "Consultation", "120.00"),
    ("EC001", "Emergency Consultation", "Consultation", "150.00"),
    ("TC001", "Telemedicine Consultation", "Consultation", "40.00"),
    ("HV001", "Home Visit", "Consultation", "110.00"),
    ("PE001", "Annual Physical Examination", "Preventive Care", "90.00"),
    ("VAC001", "Vaccination Administration", "Preventive Care", "25.00"),
    ("MP001", "Minor Procedure", "Procedure", "80.00"),
    ("WD001", "Wound Dressing", "Procedure", "30.00"),
]


def canonical_entries(catalog: Catalog, currency: str = "GBP") -> list[PricingEntry]:
    if catalog == Catalog.LAB_TESTS:
        return [
            LabTest(id=None, name=name, code=code, category=category, base_price=Decimal(price), currency=currency)
            for code, name, category, price in LAB_TESTS
        ]

    if catalog == Catalog.IMAGING:
        return [
            ImagingService(
                id=None,
                name=name,
                code=code,
                category="Imaging",
                base_price=Decimal(price),
                currency=currency,
                modality=modality,
                body_part=body_part,
            )
            for code, name, modality, body_part, price in IMAGING
        ]

    return [
        DoctorFee(id=None, name=name, code=code, category=category, base_price=Decimal(price), currency=currency)
        for code, name, category, price in DOCTOR_FEES
    ]
