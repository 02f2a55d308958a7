from setuptools import setup

setup(
    name='combjson',
    version='0.1.0',
    description='Parser combinators and a JSON grammar built on them',
    packages=['combjson'],
    package_dir={'': 'src'},
    python_requires='>=3.8',
    install_requires=[
    ],
    extras_require={
        'test': ['pytest'],
    },
)
