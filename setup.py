from setuptools import setup


setup(
    name="funnel-report",
    version="0.1.0",
    description="Customer funnel analytics for hearing-clinic CSV and Excel exports",
    packages=["funnel_report"],
    include_package_data=True,
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "funnel-report=funnel_report.cli:main",
        ]
    },
)
