from setuptools import setup, find_packages

setup(
    name='esreindex',
    version='0.1.0',
    long_description='Copy an ElasticSearch index (settings, mappings and documents) between clusters',
    packages=find_packages(exclude=['test', 'test.*']),
    include_package_data=True,
    zip_safe=False,
    python_requires='>=3.11',
    install_requires=[
        'Flask>=2.0.0',
        "elasticsearch>=7.0.0,<7.14.0",
        'requests',
        'tenacity',
    ],
    extras_require={
        'dev': [
            'pytest>=7.4.0',
            'pytest-cov>=4.1.0',
            'black>=23.0.0',
            'flake8>=6.0.0',
            'isort>=5.12.0',
        ]
    }
)
