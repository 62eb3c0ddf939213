from setuptools import setup, find_packages

setup(
    name='decision-market-engine',
    version='0.1.0',
    packages=find_packages(include=['decision_market', 'decision_market.*']),
    install_requires=[
        'mpmath',
        'numpy',
        'typing_extensions',
        'supabase',
        'python-dotenv',
    ],
    extras_require={
        'test': ['pytest'],
    },
    description='Deterministic Python engine for futarchy-style decision markets: deposits, proposals, accept/reject claims, price-tracked graduation and verified resolution.',
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.11',
)
