from setuptools import setup, find_packages

setup(
    name='hako-aot',
    version='0.1.0',
    py_modules=['hako', 'compiler'],
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'hakoc.runtime': ['*.summary.json'],
    },
    install_requires=[
        'lark',
        'pydantic>=2',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'hako = hako:main',
        ],
    },
)
