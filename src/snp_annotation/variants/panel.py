"""Curated panel of medically relevant SNPs.

Used when batch.restrict_to_panel is enabled to annotate only variants with
known, actionable implications. Sources: PharmGKB, ClinVar, SNPedia. Not
exhaustive.
"""

RELEVANT_SNPS: frozenset[str] = frozenset({
    # Pharmacogenomics
    "rs4680",       # COMT
    "rs1057910",    # CYP2C9
    "rs4244285",    # CYP2C19
    "rs3892097",    # CYP2D6
    "rs776746",     # CYP3A5
    "rs1142345",    # TPMT
    "rs1801133",    # MTHFR C677T
    "rs1801131",    # MTHFR A1298C
    "rs116855232",  # DPYD
    "rs12248560",   # UGT1A1
    "rs4149056",    # SLCO1B1
    "rs1045642",    # ABCB1
    "rs2231142",    # ABCG2
    "rs699",        # AGT
    "rs762551",     # CYP1A2
    "rs1065852",    # CYP2D6*10
    "rs12777823",   # near MTNR1B
    "rs7903146",    # TCF7L2
    "rs6265",       # BDNF Val66Met
    "rs1137101",    # LEPR
    "rs1042713",    # ADRB2
    "rs1042714",    # ADRB2
    "rs4961",       # ADD1
    "rs5051",       # GNB3

    # Carrier screening / disease risk
    "rs1801725",    # CASR
    "rs28934571",   # SERPINA1 PiZ
    "rs1799945",    # HFE H63D
    "rs1800562",    # HFE C282Y
    "rs429358",     # APOE
    "rs7412",       # APOE
    "rs6025",       # F5 Leiden
    "rs1799963",    # F2 G20210A
    "rs80357906",   # BRCA1
    "rs80359550",   # BRCA2
    "rs113993960",  # CFTR F508del

    # Nutrition and metabolism
    "rs4988235",    # MCM6 / lactase persistence
    "rs9939609",    # FTO
    "rs1800795",    # IL6
    "rs2282679",    # GC (vitamin D binding protein)
    "rs10741657",   # CYP2R1
    "rs602662",     # FUT2 (vitamin B12)
    "rs174547",     # FADS1
})
