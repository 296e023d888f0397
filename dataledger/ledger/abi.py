"""ABI of the deployed DataLicense contract."""


def _fn(name, inputs, outputs=(), mutability='nonpayable'):
    return {
        'type': 'function',
        'name': name,
        'inputs': [{'internalType': t, 'name': n, 'type': t} for n, t in inputs],
        'outputs': list(outputs),
        'stateMutability': mutability,
    }


def _event(name, value_name):
    return {
        'type': 'event',
        'name': name,
        'anonymous': False,
        'inputs': [
            {'indexed': True, 'internalType': 'address', 'name': 'user', 'type': 'address'},
            {'indexed': True, 'internalType': 'address', 'name': 'company', 'type': 'address'},
            {'indexed': False, 'internalType': 'uint256', 'name': value_name, 'type': 'uint256'},
        ],
    }


LICENSE_TUPLE = {
    'internalType': 'struct DataLicense.License',
    'name': '',
    'type': 'tuple',
    'components': [
        {'internalType': 'address', 'name': 'user', 'type': 'address'},
        {'internalType': 'address', 'name': 'company', 'type': 'address'},
        {'internalType': 'string', 'name': 'dataTypes', 'type': 'string'},
        {'internalType': 'uint256', 'name': 'monthlyPayment', 'type': 'uint256'},
        {'internalType': 'uint256', 'name': 'startTime', 'type': 'uint256'},
        {'internalType': 'uint256', 'name': 'endTime', 'type': 'uint256'},
        {'internalType': 'bool', 'name': 'isActive', 'type': 'bool'},
    ],
}

DATA_LICENSE_ABI = [
    _fn('registerUser', [('_username', 'string')]),
    _fn('grantAccess', [('_company', 'address'), ('_dataTypes', 'string'),
                        ('_monthlyPayment', 'uint256'), ('_durationMonths', 'uint256')]),
    _fn('revokeAccess', [('_company', 'address')]),
    _fn('payUser', [('_user', 'address'), ('_amount', 'uint256')], mutability='payable'),
    _fn('isAccessActive', [('_user', 'address'), ('_company', 'address')],
        outputs=[{'internalType': 'bool', 'name': '', 'type': 'bool'}], mutability='view'),
    _fn('getUserEarnings', [('_user', 'address')],
        outputs=[{'internalType': 'uint256', 'name': '', 'type': 'uint256'}], mutability='view'),
    _fn('getUserLicenses', [('_user', 'address')],
        outputs=[{'internalType': 'uint256[]', 'name': '', 'type': 'uint256[]'}], mutability='view'),
    _fn('getLicenseDetails', [('_licenseId', 'uint256')],
        outputs=[LICENSE_TUPLE], mutability='view'),
    _event('AccessGranted', 'licenseId'),
    _event('AccessRevoked', 'licenseId'),
    _event('PaymentMade', 'amount'),
]

EVENT_VALUE_FIELDS = {
    'AccessGranted': 'licenseId',
    'AccessRevoked': 'licenseId',
    'PaymentMade': 'amount',
}
